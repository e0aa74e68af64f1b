from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.constants import NO_RELEVANT_DOCUMENTS
from app.core.errors import EmbeddingDimensionError, ProviderError
from app.services.retrieval.service import (
    SearchResult,
    VectorSearchService,
    distance_cutoff,
    format_relevant_context,
    passes_threshold,
    similarity_from_distance,
)


def make_row(distance, filename="policy.txt", chunk_index=0, content="Refunds take 14 days."):
    return SimpleNamespace(
        id=f"chunk-{chunk_index}",
        document_id="doc-1",
        chunk_index=chunk_index,
        content=content,
        chunk_metadata={"character_start": 0, "character_end": len(content)},
        filename=filename,
        distance=distance,
    )


@pytest.fixture
def mock_db_session():
    """Mock the database session."""
    session = AsyncMock(spec=AsyncSession)
    mock_result = MagicMock()
    session.execute.return_value = mock_result
    mock_result.all.return_value = []
    return session


@pytest.fixture
def search_service(mock_db_session, embedding_service):
    return VectorSearchService(mock_db_session, embedding_service=embedding_service)


# Dyadic values keep 1 - x exact in binary floating point
@pytest.mark.parametrize("threshold", [0.0, 0.125, 0.25, 0.5, 0.75, 1.0])
@pytest.mark.parametrize("distance", [0.0, 0.125, 0.25, 0.5, 0.75, 0.875, 1.0, 1.5, 2.0])
def test_distance_cutoff_agrees_with_similarity_threshold(threshold, distance):
    """A distance is under the cutoff exactly when its similarity meets the threshold."""
    assert (distance <= distance_cutoff(threshold)) == passes_threshold(distance, threshold)
    assert similarity_from_distance(distance) == pytest.approx(1 - distance)


def test_query_is_scoped_to_completed_documents_of_the_user(search_service):
    query = search_service.build_query([0.1, 0.2, 0.3], "test-user-id", limit=5, similarity_threshold=0.2)

    sql = str(query.compile(dialect=postgresql.dialect()))
    assert "<=>" in sql
    assert "JOIN document ON document_chunk.document_id = document.id" in sql
    assert "document.user_id = %(user_id_1)s" in sql
    assert "document.status = %(status_1)s" in sql
    assert "ORDER BY distance" in sql
    assert "LIMIT" in sql

    params = list(query.compile(dialect=postgresql.dialect()).params.values())
    assert "test-user-id" in params
    assert "completed" in params
    assert 5 in params
    assert pytest.approx(0.8) in params


@pytest.mark.asyncio
async def test_search_converts_distance_to_similarity(search_service, mock_db_session):
    mock_db_session.execute.return_value.all.return_value = [
        make_row(0.1, chunk_index=0),
        make_row(0.35, filename="faq.pdf", chunk_index=1),
    ]

    results = await search_service.search("refund policy", "test-user-id", limit=5, similarity_threshold=0.2)

    assert [r.chunk_id for r in results] == ["chunk-0", "chunk-1"]
    assert results[0].similarity == pytest.approx(0.9)
    assert results[1].similarity == pytest.approx(0.65)
    assert results[1].document_filename == "faq.pdf"
    mock_db_session.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_search_drops_rows_below_threshold_and_caps_results(search_service, mock_db_session):
    mock_db_session.execute.return_value.all.return_value = [
        make_row(0.05, chunk_index=0),
        make_row(0.2, chunk_index=1),
        make_row(0.79, chunk_index=2),
        make_row(0.81, chunk_index=3),
    ]

    results = await search_service.search("refund policy", "test-user-id", limit=2, similarity_threshold=0.2)

    assert [r.chunk_index for r in results] == [0, 1]


@pytest.mark.asyncio
async def test_search_keeps_exact_threshold_match(search_service, mock_db_session):
    mock_db_session.execute.return_value.all.return_value = [make_row(0.5)]

    results = await search_service.search("q", "test-user-id", similarity_threshold=0.5)

    assert len(results) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("kwargs", [{"limit": 0}, {"similarity_threshold": -0.1}, {"similarity_threshold": 1.1}])
async def test_search_validates_arguments(search_service, mock_db_session, kwargs):
    with pytest.raises(ValueError):
        await search_service.search("q", "test-user-id", **kwargs)

    mock_db_session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_query_vector_dimension_mismatch_is_fatal(mock_db_session):
    embedding_service = MagicMock()
    embedding_service.embed = AsyncMock(return_value=[0.1, 0.2, 0.3])
    service = VectorSearchService(mock_db_session, embedding_service=embedding_service)

    with pytest.raises(EmbeddingDimensionError):
        await service.search("q", "test-user-id")

    mock_db_session.execute.assert_not_awaited()


@pytest.mark.asyncio
async def test_provider_errors_propagate(mock_db_session):
    embedding_service = MagicMock()
    embedding_service.embed = AsyncMock(side_effect=ProviderError("unavailable", provider_name="openai_embedding"))
    service = VectorSearchService(mock_db_session, embedding_service=embedding_service)

    with pytest.raises(ProviderError):
        await service.get_relevant_context("q", "test-user-id")


@pytest.mark.asyncio
async def test_no_documents_returns_sentinel(search_service):
    context = await search_service.get_relevant_context(
        "refund policy", "test-user-id", limit=5, similarity_threshold=0.2
    )

    assert context == NO_RELEVANT_DOCUMENTS == "No relevant documents found in the knowledge base."


@pytest.mark.asyncio
async def test_relevant_context_format(search_service, mock_db_session):
    mock_db_session.execute.return_value.all.return_value = [
        make_row(0.1234, filename="policy.txt", chunk_index=0, content="Refunds take 14 days."),
        make_row(0.3, filename="faq.pdf", chunk_index=4, content="Contact support by email."),
    ]

    context = await search_service.get_relevant_context("refund policy", "test-user-id")

    assert context == (
        "RELEVANT KNOWLEDGE BASE CONTEXT:\n\n"
        "[Document 1: policy.txt (Relevance: 87.7%)]\nRefunds take 14 days."
        "\n\n---\n\n"
        "[Document 2: faq.pdf (Relevance: 70.0%)]\nContact support by email."
        "\n\nPlease use the above context to answer the user's question. "
        "If the context doesn't contain relevant information, acknowledge that and use your general knowledge."
    )


def test_format_relevant_context_unknown_filename():
    result = SearchResult(
        chunk_id="c", document_id="d", document_filename="", chunk_index=0, content="text", similarity=0.5
    )

    assert "[Document 1: Unknown (Relevance: 50.0%)]" in format_relevant_context([result])
