"""
Unit test fixtures - factory-built models.
"""

import pytest

from tests.factories.model_factories import make_job_metadata, make_request


@pytest.fixture
def request_data():
    """Return randomized quantify request data dict."""
    return make_request()


@pytest.fixture
def job_metadata_data():
    """Return randomized job metadata data dict."""
    return make_job_metadata()
