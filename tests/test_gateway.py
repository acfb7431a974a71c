import io
import pytest
from moto import mock_aws
from botocore.exceptions import ClientError
from PIL import Image

from app.exceptions import ProviderException
from app.photo_wall.models import Rendition
from app.settings import Settings
from app.storage.dynamodb import DynamoDBService
from app.storage.gateway import StorageGateway, format_created_at, parse_created_at
from app.storage.s3 import S3Service


def make_image_bytes(fmt="JPEG", size=(12, 8)):
    """Generate a simple valid image in-memory."""
    img = Image.new("RGB", size, color="green")
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def make_gateway(**overrides):
    values = {
        "aws_access_key_id": "testing",
        "aws_secret_access_key": "testing",
        "s3_bucket": "gateway-bucket",
        "dynamodb_table": "GatewayPhotos",
        "cdn_base_url": None,
    }
    values.update(overrides)
    s = Settings(**values)
    return StorageGateway(S3Service(s), DynamoDBService(s), folder="wall")


@pytest.fixture
def gateway(aws_credentials):
    with mock_aws():
        yield make_gateway()


# ------------------------------
# store
# ------------------------------

def test_store_returns_assigned_id_and_dimensions(gateway):
    stored = gateway.store(make_image_bytes(size=(12, 8)), "image/jpeg", {"uploader": "Alice"})

    assert stored.id.startswith("wall/")
    assert (stored.width, stored.height) == (12, 8)
    assert stored.metadata == {"uploader": "Alice"}

    head = gateway.s3.client.head_object(Bucket="gateway-bucket", Key=stored.id)
    assert head["ContentType"] == "image/jpeg"


def test_store_assigns_unique_ids(gateway):
    data = make_image_bytes()
    ids = {gateway.store(data, "image/jpeg", {"uploader": "x"}).id for _ in range(5)}
    assert len(ids) == 5


def test_store_rejects_unreadable_image(gateway):
    with pytest.raises(ProviderException) as err:
        gateway.store(b"not an image", "image/png", {"uploader": "x"})
    assert err.value.detail == "Invalid image file"
    assert gateway.list() == []


def test_store_surfaces_provider_message(gateway, mocker):
    error = ClientError({"Error": {"Code": "500", "Message": "quota exceeded"}}, "PutObject")
    mocker.patch.object(gateway.s3.client, "upload_fileobj", side_effect=error)

    with pytest.raises(ProviderException) as err:
        gateway.store(make_image_bytes(), "image/jpeg", {"uploader": "x"})
    assert "quota exceeded" in err.value.detail
    assert err.value.status_code == 500


# ------------------------------
# list
# ------------------------------

def test_list_orders_by_creation_time(gateway):
    data = make_image_bytes(fmt="PNG")
    first = gateway.store(data, "image/png", {"uploader": "a"})
    second = gateway.store(data, "image/png", {"uploader": "b"})

    newest_first = gateway.list("wall", max_results=200, order="desc")
    assert [o.id for o in newest_first] == [second.id, first.id]
    assert newest_first[0].metadata == {"uploader": "b"}
    assert newest_first[0].created_at == second.created_at

    oldest_first = gateway.list("wall", order="asc")
    assert [o.id for o in oldest_first] == [first.id, second.id]


def test_list_respects_max_results_and_folder(gateway):
    data = make_image_bytes()
    for _ in range(3):
        gateway.store(data, "image/jpeg", {"uploader": "x"})

    assert len(gateway.list(max_results=2)) == 2
    assert gateway.list("other_folder") == []


# ------------------------------
# url_for
# ------------------------------

def test_url_for_presigns_without_cdn(gateway):
    url = gateway.url_for("wall/abc", Rendition())
    assert "gateway-bucket" in url
    assert "wall/abc" in url


def test_url_for_applies_rendition_on_cdn(aws_credentials):
    with mock_aws():
        gw = make_gateway(cdn_base_url="https://cdn.example.com/")
        url = gw.url_for("wall/abc", Rendition())
    assert url == "https://cdn.example.com/wall/abc?format=auto&quality=auto"


def test_created_at_round_trip_keeps_microseconds(gateway):
    stored = gateway.store(make_image_bytes(), "image/jpeg", {})
    assert parse_created_at(format_created_at(stored.created_at)) == stored.created_at


def test_presigned_url_uses_configured_expiry(aws_credentials, mocker):
    with mock_aws():
        gw = make_gateway(presign_expire_seconds=120)
        sign = mocker.spy(gw.s3.client, "generate_presigned_url")
        gw.url_for("wall/abc")
    assert sign.call_args.kwargs["ExpiresIn"] == 120
