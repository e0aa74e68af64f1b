from datetime import datetime, timedelta, UTC

import pytest
from sqlalchemy import func, select

from app.core.errors import NotFoundOrForbidden
from app.db.models.conversation_summary import ConversationSummary
from app.services.conversation.memory import ConversationMemoryService, format_memory_context, merge_topics


@pytest.fixture
def memory_service(db_session, summarizer):
    return ConversationMemoryService(db_session, summarizer=summarizer, min_messages=4)


async def summary_count(db_session, conversation_id):
    result = await db_session.execute(
        select(func.count(ConversationSummary.id)).where(ConversationSummary.conversation_id == conversation_id)
    )
    return result.scalar_one()


def add_summary(db_session, user_id, conversation_id, importance, created_at, topics=None):
    db_session.add(ConversationSummary(
        user_id=user_id,
        conversation_id=conversation_id,
        summary=f"Summary of {conversation_id}",
        key_topics=topics or [],
        importance_score=importance,
        message_count=4,
        created_at=created_at,
    ))


@pytest.mark.asyncio
async def test_should_summarize_needs_four_messages(memory_service, make_conversation, test_user_id):
    short = await make_conversation(test_user_id, 3)
    enough = await make_conversation(test_user_id, 4)

    assert await memory_service.should_summarize(short.id) is False
    assert await memory_service.should_summarize(enough.id) is True


@pytest.mark.asyncio
async def test_generate_summary_stores_one_summary(memory_service, make_conversation, summarizer, test_user_id):
    conversation = await make_conversation(test_user_id, 4)

    summary = await memory_service.generate_summary(conversation.id, test_user_id)

    assert summary.summary == "User asked about refunds and prefers email contact."
    assert summary.key_topics == ["refunds", "contact"]
    assert summary.importance_score == 7
    assert summary.message_count == 4
    assert [m.content for m in summarizer.calls[0]] == ["Message 0", "Message 1", "Message 2", "Message 3"]
    assert await memory_service.should_summarize(conversation.id) is False
    assert await memory_service.has_summary(conversation.id) is True


@pytest.mark.asyncio
async def test_generate_summary_without_messages(memory_service, make_conversation, summarizer, test_user_id):
    conversation = await make_conversation(test_user_id, 0)

    assert await memory_service.generate_summary(conversation.id, test_user_id) is None
    assert summarizer.calls == []


@pytest.mark.asyncio
async def test_generate_summary_for_another_users_conversation(
    memory_service, make_conversation, summarizer, test_user_id, other_user_id
):
    conversation = await make_conversation(other_user_id, 4)

    with pytest.raises(NotFoundOrForbidden):
        await memory_service.generate_summary(conversation.id, test_user_id)

    with pytest.raises(NotFoundOrForbidden):
        await memory_service.generate_summary("missing-conversation", test_user_id)

    assert summarizer.calls == []


@pytest.mark.asyncio
async def test_maybe_summarize(memory_service, make_conversation, summarizer, test_user_id):
    short = await make_conversation(test_user_id, 2)
    enough = await make_conversation(test_user_id, 5)

    assert await memory_service.maybe_summarize(short.id, test_user_id) is None
    assert (await memory_service.maybe_summarize(enough.id, test_user_id)).message_count == 5
    # Already summarized
    assert await memory_service.maybe_summarize(enough.id, test_user_id) is None
    assert len(summarizer.calls) == 1


@pytest.mark.asyncio
async def test_two_corrections_append_and_overwrite(memory_service, db_session, test_user_id):
    await memory_service.record_correction("conv-1", test_user_id, "I prefer email.", importance=6, emotion=2)

    summary = await memory_service.record_correction(
        "conv-1", test_user_id, "Actually, phone calls are fine too.", importance=9, emotion=-1
    )

    assert summary.summary == "I prefer email.\n\nActually, phone calls are fine too."
    assert summary.importance_score == 9
    assert summary.emotion == -1
    assert summary.key_topics == ["preference", "correction"]
    assert summary.message_count == 1
    assert await summary_count(db_session, "conv-1") == 1


@pytest.mark.asyncio
async def test_correction_after_summary_appends(memory_service, make_conversation, db_session, test_user_id):
    conversation = await make_conversation(test_user_id, 4)
    await memory_service.generate_summary(conversation.id, test_user_id)

    summary = await memory_service.record_correction(conversation.id, test_user_id, "Call me Sam.", importance=8)

    assert summary.summary == "User asked about refunds and prefers email contact.\n\nCall me Sam."
    assert summary.key_topics == ["refunds", "contact", "preference", "correction"]
    assert summary.importance_score == 8
    assert summary.message_count == 4
    assert await summary_count(db_session, conversation.id) == 1


@pytest.mark.asyncio
async def test_summary_after_correction_appends(memory_service, make_conversation, db_session, test_user_id):
    conversation = await make_conversation(test_user_id, 6)
    await memory_service.record_correction(conversation.id, test_user_id, "I am vegetarian.", importance=7)

    summary = await memory_service.generate_summary(conversation.id, test_user_id)

    assert summary.summary.startswith("I am vegetarian.\n\n")
    assert summary.message_count == 6
    assert await summary_count(db_session, conversation.id) == 1


@pytest.mark.asyncio
async def test_concurrent_creation_falls_back_to_append(memory_service, db_session, test_user_id):
    await memory_service.record_correction("conv-race", test_user_id, "first", importance=5)

    real_find = memory_service._find_summary
    calls = []

    async def racing_find(conversation_id, lock=False):
        # The first lookup misses the row another writer already committed
        calls.append(conversation_id)
        if len(calls) == 1:
            return None
        return await real_find(conversation_id, lock=lock)

    memory_service._find_summary = racing_find

    summary = await memory_service.record_correction("conv-race", test_user_id, "second", importance=6)

    assert len(calls) == 2
    assert summary.summary == "first\n\nsecond"
    assert await summary_count(db_session, "conv-race") == 1


@pytest.mark.asyncio
async def test_correction_on_another_users_summary_is_rejected(
    memory_service, db_session, test_user_id, other_user_id
):
    await memory_service.record_correction("conv-2", other_user_id, "Their preference.", importance=5)

    with pytest.raises(NotFoundOrForbidden):
        await memory_service.record_correction("conv-2", test_user_id, "Hijack.", importance=5)

    summary = await memory_service.get_summary("conv-2", other_user_id)
    assert summary.summary == "Their preference."


@pytest.mark.asyncio
@pytest.mark.parametrize("content, importance", [("", 5), ("   ", 5), ("valid", 0), ("valid", 11)])
async def test_invalid_corrections(memory_service, db_session, test_user_id, content, importance):
    with pytest.raises(ValueError):
        await memory_service.record_correction("conv-3", test_user_id, content, importance=importance)

    assert await summary_count(db_session, "conv-3") == 0


@pytest.mark.asyncio
async def test_get_summary_is_owner_only(memory_service, test_user_id, other_user_id):
    await memory_service.record_correction("conv-4", test_user_id, "Mine.", importance=5)

    assert (await memory_service.get_summary("conv-4", test_user_id)).summary == "Mine."
    with pytest.raises(NotFoundOrForbidden):
        await memory_service.get_summary("conv-4", other_user_id)
    with pytest.raises(NotFoundOrForbidden):
        await memory_service.get_summary("conv-none", test_user_id)


@pytest.mark.asyncio
async def test_recent_summaries_filter_and_order(memory_service, db_session, test_user_id, other_user_id):
    now = datetime.now(UTC)
    add_summary(db_session, test_user_id, "old", 8, now - timedelta(days=3))
    add_summary(db_session, test_user_id, "trivial", 2, now - timedelta(hours=1))
    add_summary(db_session, test_user_id, "newest", 4, now - timedelta(minutes=5))
    add_summary(db_session, test_user_id, "middle", 9, now - timedelta(days=1))
    add_summary(db_session, test_user_id, "oldest", 10, now - timedelta(days=7))
    add_summary(db_session, other_user_id, "theirs", 10, now)
    await db_session.commit()

    recent = await memory_service.get_recent_summaries(test_user_id, limit=3, min_importance=4)

    assert [s.conversation_id for s in recent] == ["newest", "middle", "old"]


def test_format_memory_context_empty():
    assert format_memory_context([]) == ""


def test_format_memory_context_blocks():
    summaries = [
        ConversationSummary(
            conversation_id="a", user_id="u", summary="Prefers email.", key_topics=["contact"],
            importance_score=7, created_at=datetime(2026, 3, 1, tzinfo=UTC),
        ),
        ConversationSummary(
            conversation_id="b", user_id="u", summary="Asked about refunds.", key_topics=[],
            importance_score=5, created_at=datetime(2026, 2, 14, tzinfo=UTC),
        ),
    ]

    context = format_memory_context(summaries)

    assert context.startswith("CONVERSATION MEMORY (summaries of past conversations with this user):\n\n")
    assert "[Memory 1: 2026-03-01 (Importance: 7/10, Topics: contact)]\nPrefers email." in context
    assert "\n\n---\n\n[Memory 2: 2026-02-14 (Importance: 5/10, Topics: none)]\nAsked about refunds." in context


def test_merge_topics_keeps_first_seen_order():
    assert merge_topics(["a", "b"], ["b", "c", ""]) == ["a", "b", "c"]
    assert merge_topics(None, ["x"]) == ["x"]


@pytest.mark.asyncio
async def test_summary_stats(memory_service, db_session, test_user_id):
    now = datetime.now(UTC)
    add_summary(db_session, test_user_id, "s1", 8, now, topics=["refunds", "contact"])
    add_summary(db_session, test_user_id, "s2", 5, now, topics=["refunds"])
    add_summary(db_session, test_user_id, "s3", 6, now, topics=[])
    await db_session.commit()

    stats = await memory_service.get_summary_stats(test_user_id)

    assert stats["total_summaries"] == 3
    assert stats["average_importance"] == pytest.approx(6.33)
    assert stats["total_messages"] == 12
    assert stats["top_topics"] == [{"topic": "refunds", "count": 2}, {"topic": "contact", "count": 1}]


@pytest.mark.asyncio
async def test_summary_stats_without_summaries(memory_service, test_user_id):
    stats = await memory_service.get_summary_stats(test_user_id)

    assert stats == {"total_summaries": 0, "average_importance": 0.0, "total_messages": 0, "top_topics": []}


@pytest.mark.asyncio
async def test_delete_summary_is_owner_only(memory_service, db_session, test_user_id, other_user_id):
    summary = await memory_service.record_correction("conv-5", test_user_id, "Delete me.", importance=5)

    with pytest.raises(NotFoundOrForbidden):
        await memory_service.delete_summary(summary.id, other_user_id)
    assert await summary_count(db_session, "conv-5") == 1

    await memory_service.delete_summary(summary.id, test_user_id)
    assert await summary_count(db_session, "conv-5") == 0


@pytest.mark.asyncio
async def test_correction_on_another_users_conversation_is_rejected(
    memory_service, make_conversation, db_session, test_user_id, other_user_id
):
    conversation = await make_conversation(test_user_id, 6)

    with pytest.raises(NotFoundOrForbidden):
        await memory_service.record_correction(conversation.id, other_user_id, "Hijack.", importance=5)

    assert await summary_count(db_session, conversation.id) == 0
    assert await memory_service.should_summarize(conversation.id) is True
    summary = await memory_service.generate_summary(conversation.id, test_user_id)
    assert summary.user_id == test_user_id
