import boto3
from typing import Optional, Dict, Any, List
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from app.settings import Settings
import logging

log = logging.getLogger(__name__)

FOLDER_INDEX = "FolderIndex"

# -------------------------
# DynamoDB Service
# -------------------------
class DynamoDBService:
    def __init__(self, settings: Settings):
        self.table_name = settings.dynamodb_table
        session = boto3.session.Session(region_name=settings.aws_region)
        kwargs = {
            "aws_access_key_id": settings.aws_access_key_id,
            "aws_secret_access_key": settings.aws_secret_access_key,
        }
        if settings.aws_endpoint_url:
            kwargs["endpoint_url"] = settings.aws_endpoint_url

        self.resource = session.resource("dynamodb", **kwargs)
        log.info("Initialized DynamoDB resource")

        # Ensure table exists at initialization
        self.ensure_table()

    # Refer here: https://boto3.amazonaws.com/v1/documentation/api/latest/reference/services/dynamodb/client/create_table.html
    def ensure_table(self):
        try:
            table = self.resource.Table(self.table_name)
            table.load()
        except ClientError:
            table = self.resource.create_table(
                TableName=self.table_name,
                KeySchema=[{"AttributeName": "photo_id", "KeyType": "HASH"}],
                AttributeDefinitions=[
                    {"AttributeName": "photo_id", "AttributeType": "S"},
                    {"AttributeName": "folder", "AttributeType": "S"},
                    {"AttributeName": "created_at", "AttributeType": "S"},
                ],
                GlobalSecondaryIndexes=[
                    {
                        "IndexName": FOLDER_INDEX,
                        "KeySchema": [
                            {"AttributeName": "folder", "KeyType": "HASH"},
                            {"AttributeName": "created_at", "KeyType": "RANGE"},
                        ],
                        "Projection": {"ProjectionType": "ALL"},
                        "ProvisionedThroughput": {"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
                    }
                ],
                ProvisionedThroughput={"ReadCapacityUnits": 5, "WriteCapacityUnits": 5},
            )
            table.wait_until_exists()
            log.info("Created table %s", self.table_name)

    def put_metadata(self, item: Dict[str, Any]):
        table = self.resource.Table(self.table_name)
        table.put_item(Item=item)
        log.debug("Inserted metadata %s", item.get("photo_id"))

    def query_folder(
        self,
        folder: str,
        limit: int = 200,
        newest_first: bool = True,
    ) -> List[Dict[str, Any]]:
        """Items of one folder, ordered by created_at."""
        table = self.resource.Table(self.table_name)
        resp = table.query(
            IndexName=FOLDER_INDEX,
            KeyConditionExpression=Key("folder").eq(folder),
            ScanIndexForward=not newest_first,
            Limit=limit,
        )
        return resp.get("Items", [])

    def close(self):
        log.info("Closed DynamoDB resource")
