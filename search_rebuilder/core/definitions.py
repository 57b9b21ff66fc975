"""Declarative search resource definitions loaded from bundled JSON files.

The models only validate the fields the pipeline relies on. Every other field
is kept as-is so that the body sent to the search service matches the file on
disk.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from search_rebuilder.core.errors import ConfigurationError

logger = logging.getLogger(__name__)

INDEX_FILE = "index.json"
INDEXER_FILE = "indexer.json"
DATA_SOURCE_FILE = "datasource.json"

T = TypeVar("T", bound=BaseModel)


class _ServiceDefinition(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str = Field(..., min_length=1)

    def to_body(self) -> Dict[str, Any]:
        """Serialize to the service's wire format (camelCase, no nulls)."""
        return self.model_dump(by_alias=True, exclude_none=True)


class IndexDefinition(_ServiceDefinition):
    """Search index schema."""

    fields: List[Dict[str, Any]] = Field(default_factory=list)


class DataSourceContainer(BaseModel):
    model_config = ConfigDict(extra="allow")

    name: str


class DataSourceCredentials(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    connection_string: str = Field(..., alias="connectionString")


class DataSourceDefinition(_ServiceDefinition):
    """Named binding describing the container an indexer reads from."""

    type: str = "azureblob"
    credentials: DataSourceCredentials
    container: DataSourceContainer


class IndexerDefinition(_ServiceDefinition):
    """Indexer pulling documents from a data source into an index."""

    data_source_name: str = Field(..., alias="dataSourceName")
    target_index_name: str = Field(..., alias="targetIndexName")


class SearchDefinitions(BaseModel):
    """The three resources recreated by one rebuild."""

    index: IndexDefinition
    indexer: IndexerDefinition
    data_source: DataSourceDefinition


def _read_definition(path: Path, model: Type[T]) -> T:
    logger.info(f"Loading {model.__name__} from {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigurationError(f"Definition file not found: {path}") from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not read {path}: {e}") from e

    try:
        return model.model_validate(raw)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {model.__name__} in {path}: {e}") from e


def build_data_source(
    indexer: IndexerDefinition,
    container: str,
    connection_string: Optional[str],
    source_type: str = "azureblob",
) -> DataSourceDefinition:
    """Derive the data source from the indexer's declared binding."""
    if not connection_string:
        raise ConfigurationError(
            "data_source_connection_string is required when no datasource.json is bundled"
        )
    return DataSourceDefinition(
        name=indexer.data_source_name,
        type=source_type,
        credentials=DataSourceCredentials(connection_string=connection_string),
        container=DataSourceContainer(name=container),
    )


def load_search_definitions(
    definitions_path: Path,
    container: str,
    connection_string: Optional[str] = None,
    source_type: str = "azureblob",
) -> SearchDefinitions:
    """Load index, indexer and data source definitions for one rebuild.

    Args:
        definitions_path: Directory holding index.json, indexer.json and an
            optional datasource.json
        container: Storage container the data source should point at when it
            is derived rather than bundled
        connection_string: Connection string for a derived data source
        source_type: Data source type for a derived data source

    Raises:
        ConfigurationError: If a file is missing, unreadable or invalid, or
            the definitions disagree on resource names
    """
    definitions_path = Path(definitions_path)
    index = _read_definition(definitions_path / INDEX_FILE, IndexDefinition)
    indexer = _read_definition(definitions_path / INDEXER_FILE, IndexerDefinition)

    data_source_file = definitions_path / DATA_SOURCE_FILE
    if data_source_file.exists():
        data_source = _read_definition(data_source_file, DataSourceDefinition)
    else:
        data_source = build_data_source(indexer, container, connection_string, source_type)

    if indexer.target_index_name != index.name:
        raise ConfigurationError(
            f"Indexer '{indexer.name}' targets index '{indexer.target_index_name}' "
            f"but the bundled index is '{index.name}'"
        )
    if indexer.data_source_name != data_source.name:
        raise ConfigurationError(
            f"Indexer '{indexer.name}' reads data source '{indexer.data_source_name}' "
            f"but the bundled data source is '{data_source.name}'"
        )

    return SearchDefinitions(index=index, indexer=indexer, data_source=data_source)
