"""Resumable chunked upload engine."""

from uploader.config import UploaderOptions
from uploader.events import Event, EventBus, EventName, Subscription
from uploader.items import BytesItem, PathItem, UploadItem, collect_items
from uploader.queue import AdmissionResult
from uploader.transport import HttpTransport, TransportAdapter
from uploader.upload_file import UploadFile
from uploader.uploader import Uploader

__all__ = [
    "AdmissionResult",
    "BytesItem",
    "Event",
    "EventBus",
    "EventName",
    "HttpTransport",
    "PathItem",
    "Subscription",
    "TransportAdapter",
    "UploadFile",
    "UploadItem",
    "Uploader",
    "UploaderOptions",
    "collect_items",
]
