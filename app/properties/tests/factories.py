"""
Factory Boy factories for the property catalog.
"""

from decimal import Decimal

import factory

from authentication.tests.factories import AgentFactory
from properties.models import Property


class PropertyFactory(factory.django.DjangoModelFactory):
    """
    Factory for Property model.

    Examples:
        listing = PropertyFactory(title="Sunny 2BR in Kilimani")
        unassigned = PropertyFactory(agent=None)
    """

    class Meta:
        model = Property

    title = factory.Sequence(lambda n: f"Listing {n}")
    location = factory.Faker("city")
    price = Decimal("250000.00")
    agent = factory.SubFactory(AgentFactory)
    image_url = factory.Sequence(lambda n: f"https://img.example.com/{n}.jpg")
