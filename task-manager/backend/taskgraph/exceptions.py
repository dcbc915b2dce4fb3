"""Errors raised by dependency operations.

They subclass DRF's ``APIException`` so views can let them propagate and the
framework renders them as ``{"detail": ...}`` responses with a proper status.
"""
from typing import List, Optional

from rest_framework import status
from rest_framework.exceptions import APIException


class DependencyError(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid dependency.'
    default_code = 'dependency_error'


class SelfDependencyError(DependencyError):
    default_detail = 'A task cannot depend on itself.'
    default_code = 'self_dependency'


class DuplicateDependencyError(DependencyError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'This dependency already exists.'
    default_code = 'dependency_already_exists'


class CyclicDependencyError(DependencyError):
    default_detail = 'This dependency would create a circular dependency.'
    default_code = 'circular_dependency'

    def __init__(self, detail=None, code=None, path: Optional[List[int]] = None):
        super().__init__(detail, code)
        self.path = list(path or [])


class CrossProjectDependencyError(DependencyError):
    default_detail = 'Dependencies between different projects are not allowed.'
    default_code = 'cross_project_not_allowed'


class DependencyLimitError(DependencyError):
    default_detail = 'Dependency limits exceeded.'
    default_code = 'dependency_limit_exceeded'


class DependencyNotFoundError(DependencyError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Dependency not found.'
    default_code = 'dependency_not_found'


class InvalidStatusTransition(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid status transition.'
    default_code = 'invalid_status_transition'
