"""Wire models of the artifact service.

Requests use PascalCase field names while responses use camelCase. Both
are mapped onto snake_case attributes through alias generators.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel, to_pascal


class _Request(BaseModel):
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


class _Response(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class CreateArtifactRequest(_Request):
    type: str = "actions_storage"
    name: str
    retention_days: Optional[int] = None


class CreateArtifactResponse(_Response):
    container_id: int
    # -1 while the container is still empty.
    size: int
    signed_content: Optional[str] = None
    file_container_resource_url: str
    type: str
    name: str
    url: str
    expires_on: Optional[str] = None


class PatchArtifactSize(_Request):
    size: int


class PatchArtifactSizeResponse(_Response):
    container_id: int
    size: int
    signed_content: Optional[str] = None
    type: str
    name: str
    url: str
    upload_url: Optional[str] = None


class ArtifactResponse(_Response):
    container_id: int
    size: int
    signed_content: Optional[str] = None
    file_container_resource_url: str
    type: str
    name: str
    url: str


class ListArtifactsResponse(_Response):
    count: int
    value: list[ArtifactResponse]


class ContainerEntry(_Response):
    """One item of a container listing. Folders have no content location."""

    container_id: Optional[int] = None
    scope_identifier: Optional[str] = None
    path: str
    item_type: str
    status: Optional[str] = None
    file_length: Optional[int] = None
    file_encoding: Optional[int] = None
    file_type: Optional[int] = None
    date_created: Optional[str] = None
    date_last_modified: Optional[str] = None
    item_location: Optional[str] = None
    content_location: Optional[str] = None
    file_id: Optional[int] = None
    content_id: Optional[str] = None

    @property
    def is_file(self) -> bool:
        return self.item_type == "file"


class QueryArtifactResponse(_Response):
    count: int
    value: list[ContainerEntry]
