from fastapi import Depends, Request
from app.broadcast.bus import BroadcastBus
from app.storage.gateway import StorageGateway
from app.photo_wall.service import CatalogService, UploadPipeline
from app.exceptions import ConfigurationException
from app.settings import Settings

def get_settings(request: Request) -> Settings:
    """Dependency provider for the active Settings"""
    return request.app.state.settings

def get_broadcast_bus(request: Request) -> BroadcastBus:
    """Dependency provider for BroadcastBus"""
    return request.app.state.bus

def get_storage_gateway(request: Request) -> StorageGateway:
    """Dependency provider for StorageGateway; fails while credentials are missing"""
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise ConfigurationException()
    return gateway

def get_catalog_service(gateway: StorageGateway = Depends(get_storage_gateway)) -> CatalogService:
    return CatalogService(gateway)

def get_upload_pipeline(
    gateway: StorageGateway = Depends(get_storage_gateway),
    bus: BroadcastBus = Depends(get_broadcast_bus),
    settings: Settings = Depends(get_settings),
) -> UploadPipeline:
    return UploadPipeline(gateway, bus, settings)
