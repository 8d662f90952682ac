"""
Factory Boy factories for authentication models.

Usage:
    from authentication.tests.factories import AgentFactory, UserFactory

    # Create a regular marketplace user
    user = UserFactory()

    # Create an agent
    agent = AgentFactory(first_name="Ama")
"""

import factory

from authentication.models import User, UserRole


class UserFactory(factory.django.DjangoModelFactory):
    """
    Factory for User model.

    Creates active users with the ``user`` role through
    UserManager.create_user() so passwords are hashed.

    Examples:
        user = UserFactory()
        inactive = UserFactory(is_active=False)
        staff = UserFactory(is_staff=True)
    """

    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    first_name = factory.Faker("first_name")
    last_name = factory.Faker("last_name")
    role = UserRole.USER
    is_active = True
    is_staff = False

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Override create to use UserManager.create_user()."""
        password = kwargs.pop("password", "TestPass123!")
        return model_class.objects.create_user(
            email=kwargs.pop("email"), password=password, **kwargs
        )


class AgentFactory(UserFactory):
    """Factory for agent accounts."""

    email = factory.Sequence(lambda n: f"agent{n}@example.com")
    role = UserRole.AGENT
