# users/models.py
from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """
    Actor: the authenticated identity performing operations.
    Projects, tasks and comments reference users; they never own them.
    """
    avatar = models.CharField(max_length=1024, blank=True, null=True)

    @property
    def display_name(self):
        full_name = self.get_full_name()
        return full_name or self.username

    def __str__(self):
        return self.username
