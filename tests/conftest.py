import os
import pytest
from moto import mock_aws
from fastapi.testclient import TestClient

# Set test environment variables BEFORE importing app modules
os.environ["TESTING"] = "true"

# Dummy AWS credentials for moto
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_REGION"] = "us-east-1"
os.environ["S3_BUCKET"] = "photo-wall-bucket"
os.environ["DYNAMODB_TABLE"] = "Photos"
os.environ["PHOTO_FOLDER"] = "test_wall"
# Clear anything that would point away from the moto mocks
for name in ("AWS_ENDPOINT_URL", "CDN_BASE_URL", "PHOTO_WALL_PIN"):
    os.environ.pop(name, None)

from app.main import app
from app.settings import settings


@pytest.fixture(scope="function")
def aws_credentials():
    """Mocked AWS Credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"


@pytest.fixture(scope="function")
def test_client(aws_credentials):
    with mock_aws():
        # The lifespan creates the bucket and the table inside the moto context
        with TestClient(app) as client:
            yield client


@pytest.fixture(scope="function")
def configure(test_client):
    """Swaps in settings overrides for the running app."""
    def apply(**overrides):
        test_client.app.state.settings = settings.model_copy(update=overrides)
        return test_client.app.state.settings
    return apply
