"""
Payload assembly for the editing service.

The template is edited layer by layer: text layers get the applicant's
values, image layers are pointed at uploaded assets. The editing service
exposes more than one endpoint shape for this, so each shape is a small
``EditRequestBuilder`` variant selected by name from the configuration.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

from omegaconf import DictConfig

from .models import ApplicantRecord

logger = logging.getLogger(__name__)


def infer_storage_type(url: str) -> str:
    """Infer the editing service's storage type from a URL's host."""
    host = urlsplit(url).netloc.lower()
    if host.endswith("amazonaws.com") or ".s3." in host:
        return "AWS"
    if ".blob.core.windows.net" in host:
        return "Azure"
    if "dropbox" in host:
        return "Dropbox"
    return "external"


@dataclass(frozen=True)
class LayerEdit:
    layer: str
    text: Optional[str] = None
    image_href: Optional[str] = None

    @property
    def is_image(self) -> bool:
        return self.image_href is not None


@dataclass(frozen=True)
class EditRequest:
    template_href: str
    output_href: str
    output_type: str
    edits: List[LayerEdit] = field(default_factory=list)


def build_layer_edits(
    record: ApplicantRecord,
    identifier: str,
    photo_href: str,
    signature_href: str,
    layers: DictConfig,
) -> List[LayerEdit]:
    """Map the applicant's values onto the template's named layers."""
    return [
        LayerEdit(layers.first_name, text=record.first_name),
        LayerEdit(layers.last_name, text=record.last_name),
        LayerEdit(layers.dl_number, text=identifier),
        LayerEdit(layers.dob, text=record.date_of_birth.isoformat()),
        LayerEdit(layers.address1, text=record.address1),
        LayerEdit(layers.address2, text=record.address2),
        LayerEdit(layers.photo, image_href=photo_href),
        LayerEdit(layers.signature, image_href=signature_href),
    ]


class EditRequestBuilder(ABC):
    """Turns an ``EditRequest`` into the JSON body of one endpoint shape."""

    endpoint: str

    def _io(self, request: EditRequest) -> Dict[str, Any]:
        return {
            "inputs": [{"href": request.template_href, "storage": infer_storage_type(request.template_href)}],
            "outputs": [
                {
                    "href": request.output_href,
                    "storage": infer_storage_type(request.output_href),
                    "type": request.output_type,
                }
            ],
        }

    @abstractmethod
    def layer_payload(self, edit: LayerEdit) -> Optional[Dict[str, Any]]:
        """Return the layer entry for one edit, or None when the shape cannot express it."""

    def build(self, request: EditRequest) -> Dict[str, Any]:
        layers = []
        for edit in request.edits:
            entry = self.layer_payload(edit)
            if entry is None:
                logger.warning(f"{type(self).__name__} cannot express an edit of layer {edit.layer!r}; skipped")
                continue
            layers.append(entry)
        return {**self._io(request), **self.wrap(layers)}

    def wrap(self, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"options": {"layers": entries}}


class DocumentOperationsBuilder(EditRequestBuilder):
    """Full document operations: text replacement and image replacement."""

    endpoint = "documentOperations"

    def layer_payload(self, edit: LayerEdit) -> Optional[Dict[str, Any]]:
        if edit.is_image:
            return {
                "name": edit.layer,
                "edit": {},
                "input": {"href": edit.image_href, "storage": infer_storage_type(edit.image_href)},
            }
        return {"name": edit.layer, "edit": {}, "text": {"content": edit.text or ""}}


class TextLayerBuilder(EditRequestBuilder):
    """Text-only endpoint; image layers are left as they are in the template."""

    endpoint = "text"

    def layer_payload(self, edit: LayerEdit) -> Optional[Dict[str, Any]]:
        if edit.is_image:
            return None
        return {"name": edit.layer, "text": {"content": edit.text or ""}}


class OperationsBuilder(EditRequestBuilder):
    """
    Named operations list: one ``Replace Layer Text`` or ``Replace Image``
    entry per layer. The service may answer this shape with the result
    location directly instead of a status link.
    """

    endpoint = "operations"

    def layer_payload(self, edit: LayerEdit) -> Optional[Dict[str, Any]]:
        if edit.is_image:
            return {
                "name": "Replace Image",
                "layerName": edit.layer,
                "image": {"href": edit.image_href, "storage": infer_storage_type(edit.image_href)},
            }
        return {"name": "Replace Layer Text", "layerName": edit.layer, "text": edit.text or ""}

    def wrap(self, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {"operations": entries}


REQUEST_BUILDERS: Dict[str, type[EditRequestBuilder]] = {
    "document_operations": DocumentOperationsBuilder,
    "text": TextLayerBuilder,
    "operations": OperationsBuilder,
}


def get_request_builder(variant: str) -> EditRequestBuilder:
    try:
        return REQUEST_BUILDERS[variant]()
    except KeyError:
        raise ValueError(f"Unknown edit request variant {variant!r}; expected one of {sorted(REQUEST_BUILDERS)}") from None
