"""
Module 'flows' (feature-first): point d'entrée public.
Réunit conditions et règles de validation, étapes, configuration de flow, analytics et service.
"""

from .conditions import Condition, ConditionalAction, ConditionalRule, ValidationRule, validate_field
from .models import BranchRule, FieldDefinition, FlowConfigData, FlowStepData, StepValidationResult
from .analytics import FlowAnalyticsData, percentage_change
from .repository import FlowRepository
from .service import FlowService

__all__ = [
    # conditions
    "Condition",
    "ConditionalAction",
    "ConditionalRule",
    "ValidationRule",
    "validate_field",
    # models
    "BranchRule",
    "FieldDefinition",
    "FlowConfigData",
    "FlowStepData",
    "StepValidationResult",
    # analytics
    "FlowAnalyticsData",
    "percentage_change",
    # repository / service
    "FlowRepository",
    "FlowService",
]
