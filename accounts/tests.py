from django.contrib.auth import get_user_model
from django.test import TestCase

from accounts.models import Profile, Role, display_name, has_role, role_for_user

User = get_user_model()


class ProfileSignalTests(TestCase):
    def test_new_user_gets_student_profile(self):
        user = User.objects.create_user(username="newbie", password="pass")
        self.assertEqual(user.profile.role, Role.STUDENT)

    def test_saving_again_keeps_single_profile(self):
        user = User.objects.create_user(username="newbie", password="pass")
        user.first_name = "New"
        user.save()
        self.assertEqual(Profile.objects.filter(user=user).count(), 1)


class RoleResolutionTests(TestCase):
    def test_profile_role_is_used(self):
        user = User.objects.create_user(username="teacher", password="pass")
        user.profile.role = Role.TEACHER
        user.profile.save()
        self.assertEqual(role_for_user(user), Role.TEACHER)
        self.assertTrue(has_role(user, Role.TEACHER))

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(username="root", password="pass")
        self.assertEqual(role_for_user(user), Role.ADMIN)

    def test_user_without_profile_is_student(self):
        user = User.objects.create_user(username="legacy", password="pass")
        Profile.objects.filter(user=user).delete()
        user = User.objects.get(pk=user.pk)
        self.assertEqual(role_for_user(user), Role.STUDENT)


class DisplayNameTests(TestCase):
    def test_full_name_or_username(self):
        named = User.objects.create_user(username="ada", first_name="Ada", last_name="Lovelace")
        plain = User.objects.create_user(username="anon")
        self.assertEqual(display_name(named), "Ada Lovelace")
        self.assertEqual(display_name(plain), "anon")
