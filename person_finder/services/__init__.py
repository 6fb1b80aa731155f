"""High-level services for the person finder.

This package contains the services that orchestrate matching and record
keeping on top of the pipeline and the stores.
"""

from person_finder.services.bootstrap import Services, create_services
from person_finder.services.matching import MatchService
from person_finder.services.model_loader import ModelLoader
from person_finder.services.registry import PersonRegistry

__all__ = [
    "MatchService",
    "ModelLoader",
    "PersonRegistry",
    "Services",
    "create_services",
]
