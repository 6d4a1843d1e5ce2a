"""Core decision engines and data access for the task assistant."""

from task_assistant.core.datastore import Datastore, InMemoryDatastore
from task_assistant.core.payments import PaymentEstimator, PaymentSuggestionService
from task_assistant.core.ranking import rank_candidates
from task_assistant.core.resolver import EntityResolver

__all__ = [
    "Datastore",
    "InMemoryDatastore",
    "EntityResolver",
    "PaymentEstimator",
    "PaymentSuggestionService",
    "rank_candidates",
]
