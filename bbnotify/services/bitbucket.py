"""Discord messages for Bitbucket webhook events."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping, Optional, Sequence

from pydantic import ValidationError

from bbnotify.config import settings
from bbnotify.schemas import (
    DEFAULT_COLOR,
    FAILURE_COLOR,
    PENDING_COLOR,
    SUCCESS_COLOR,
    Embed,
    EmbedAuthor,
    EmbedField,
    EmbedFooter,
    OutgoingMessage,
)
from bbnotify.services.events import EventType, parse_event_type
from bbnotify.services.markdown import MarkdownRewriter
from bbnotify.services.messages import MessageBuilder
from bbnotify.services.users import UserResolver
from bbnotify.utils import (
    DESCRIPTION_LIMIT,
    clean_html,
    short_hash,
    title_case,
    truncate,
)

logger = logging.getLogger(__name__)

MAX_PUSH_CHANGES = 4  # One embed per change, first four only.
ARROW = "\U0001F86A"
UNASSIGNED = "`Unassigned`"
REVIEWED = ":white_check_mark:"


class PayloadError(ValueError):
    """Raised when a payload cannot be turned into a message."""


class MissingFieldError(PayloadError):
    """A field the event type guarantees is absent or has the wrong shape."""

    def __init__(self, field_path: str) -> None:
        super().__init__(f"Missing or malformed field: {field_path}")
        self.field = field_path


class MalformedEventError(PayloadError):
    """A rule failed on its payload; names the event type and the field."""

    def __init__(self, event: EventType, field_path: str) -> None:
        super().__init__(f"{event.value}: missing or malformed field {field_path}")
        self.event_type = event
        self.field = field_path


class UnknownEventError(LookupError):
    """No rule is registered for the event key."""


@dataclass
class RuleContext:
    """Everything one rule invocation reads from and writes to."""

    event: EventType
    payload: Mapping[str, Any]
    users: UserResolver
    markdown: MarkdownRewriter
    base_link: str
    builder: MessageBuilder = field(default_factory=MessageBuilder)


Rule = Callable[[RuleContext], Awaitable[None]]


def _ensure_mapping(payload: Any) -> Mapping[str, Any]:
    return payload if isinstance(payload, Mapping) else {}


def _dig(data: Any, path: Sequence[str]) -> Any:
    current = data
    for key in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
        if current is None:
            return None
    return current


def _need(data: Any, *path: str, where: str = "") -> Any:
    """Like ``_dig`` but a missing step raises ``MissingFieldError``."""
    current = data
    walked = [where] if where else []
    for key in path:
        walked.append(key)
        if not isinstance(current, Mapping) or current.get(key) is None:
            raise MissingFieldError(".".join(walked))
        current = current[key]
    return current


def _record(value: Any, where: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise MissingFieldError(where)
    return value


def _records(value: Any, where: str) -> list[Any]:
    """A JSON array, or nothing; anything else is malformed."""
    if value is None:
        return []
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        raise MissingFieldError(where)
    return list(value)


def _base_link(base: str) -> str:
    return base.rstrip("/") + "/"


# ---------------------------------------------------------------------------
# Shared sub-rules
# ---------------------------------------------------------------------------


def author_from_user(user: Mapping[str, Any], base_link: str) -> EmbedAuthor:
    """
    Build an embed author from a Bitbucket user record.

    Records without ``links`` get the default avatar and no profile url.
    """
    author = EmbedAuthor(name=str(user.get("display_name") or ""))
    links = user.get("links")
    if links is None:
        author.icon_url = settings.default_avatar_url
        author.url = ""
        return author
    author.icon_url = _dig(links, ("avatar", "href"))
    username = user.get("username")
    if username:
        author.url = base_link + username
    else:
        author.url = _dig(links, ("html", "href")) or ""
    return author


def extract_author(
    ctx: RuleContext, root: str = "pullrequest", key: str = "author"
) -> EmbedAuthor:
    return author_from_user(
        _record(_need(ctx.payload, root, key), f"{root}.{key}"), ctx.base_link
    )


def actor_author(ctx: RuleContext) -> EmbedAuthor:
    return author_from_user(_record(_need(ctx.payload, "actor"), "actor"), ctx.base_link)


async def extract_actor(ctx: RuleContext) -> str:
    return await ctx.users.resolve(_dig(ctx.payload, ("actor", "display_name")))


def _repo_name(ctx: RuleContext) -> str:
    return _need(ctx.payload, "repository", "full_name")


def _repository_footer(ctx: RuleContext) -> EmbedFooter:
    return EmbedFooter(
        text=_repo_name(ctx),
        icon_url=_dig(ctx.payload, ("repository", "links", "avatar", "href")),
    )


async def format_embed(
    ctx: RuleContext,
    *,
    author: EmbedAuthor,
    content: str,
    emoji: str = "",
    title: Optional[str] = None,
    url: Optional[str] = None,
    description: Optional[str] = None,
    fields: Optional[Sequence[EmbedField]] = None,
    color: int = DEFAULT_COLOR,
) -> None:
    """Finalize one embed plus the content line and hand both to the builder."""
    embed = Embed(
        author=author,
        title=title,
        url=url,
        description=description,
        footer=_repository_footer(ctx),
        fields=list(fields or []),
        color=color,
    )
    actor = await extract_actor(ctx)
    ctx.builder.set_content(" ".join(part for part in (emoji, actor, content) if part))
    ctx.builder.add_embed(embed)


def pull_request_url(ctx: RuleContext) -> str:
    pr_id = _need(ctx.payload, "pullrequest", "id")
    return f"{ctx.base_link}{_repo_name(ctx)}/pull-requests/{pr_id}"


def issue_url(ctx: RuleContext) -> str:
    issue_id = _need(ctx.payload, "issue", "id")
    return f"{ctx.base_link}{_repo_name(ctx)}/issues/{issue_id}"


def pull_request_description(ctx: RuleContext) -> str:
    source = _need(ctx.payload, "pullrequest", "source", "branch", "name")
    destination = _need(ctx.payload, "pullrequest", "destination", "branch", "name")
    reason = _dig(ctx.payload, ("pullrequest", "reason"))
    reason_text = clean_html(reason) if reason is not None else ""
    return f"`{source}` → `{destination}`\n{reason_text}"


async def pull_request_reviewers(ctx: RuleContext) -> list[EmbedField]:
    fields = [EmbedField(name="Reviewers")]
    participants = _records(
        _dig(ctx.payload, ("pullrequest", "participants")), "pullrequest.participants"
    )
    for index, item in enumerate(participants):
        participant = _record(item, f"pullrequest.participants[{index}]")
        if participant.get("role") != "REVIEWER":
            continue
        name = _need(
            participant, "user", "display_name", where=f"pullrequest.participants[{index}]"
        )
        mention = await ctx.users.resolve(name)
        marker = REVIEWED if participant.get("approved") else ""
        fields.append(
            EmbedField(value=f"{marker} {mention}".strip(), inline=True)
        )
    return fields


# ---------------------------------------------------------------------------
# Repository rules
# ---------------------------------------------------------------------------


def _commit_fields(commits: Any, where: str) -> list[EmbedField]:
    fields: list[EmbedField] = []
    for index, item in enumerate(_records(commits, f"{where}.commits")):
        at = f"{where}.commits[{index}]"
        commit = _record(item, at)
        commit_hash = _need(commit, "hash", where=at)
        href = _need(commit, "links", "html", "href", where=at)
        message = (commit.get("message") or "").strip()
        value = f"[`{short_hash(commit_hash)}`]({href}) {message}".rstrip()
        fields.append(EmbedField(value=truncate(value, DESCRIPTION_LIMIT)))
    return fields


async def _repo_push(ctx: RuleContext) -> None:
    push = ctx.payload.get("push")
    changes = push.get("changes") if isinstance(push, Mapping) else None
    if changes is None:
        logger.warning("repo:push without push.changes, nothing to report")
        return

    author = actor_author(ctx)
    for index, item in enumerate(_records(changes, "push.changes")[:MAX_PUSH_CHANGES]):
        where = f"push.changes[{index}]"
        change = _record(item, where)
        url = _need(change, "links", "html", "href", where=where)
        old, new = change.get("old"), change.get("new")

        if new is None:
            ref_type = _need(change, "old", "type", where=where)
            name = _need(change, "old", "name", where=where)
            await format_embed(
                ctx,
                author=author,
                content=f"deleted {ref_type} `{name}`",
                url=url,
                color=FAILURE_COLOR,
            )
            continue

        name = _need(new, "name", where=f"{where}.new")
        href = _need(new, "links", "html", "href", where=f"{where}.new")
        if old is None:
            await format_embed(
                ctx,
                author=author,
                content=f"pushed a new {new.get('type') or 'branch'} [`{name}`]({href})",
                url=url,
                color=SUCCESS_COLOR,
            )
        else:
            await format_embed(
                ctx,
                author=author,
                content=f"pushed commit to [`{name}`]({href})",
                url=url,
                fields=_commit_fields(change.get("commits"), where),
            )


async def _repo_fork(ctx: RuleContext) -> None:
    fork = _need(ctx.payload, "fork", "full_name")
    repo = _need(ctx.payload, "repository", "name")
    embed = Embed(
        author=actor_author(ctx),
        description=(
            f"Created a [`fork`]({ctx.base_link}{fork})"
            f" of [`{repo}`]({ctx.base_link}{_repo_name(ctx)})"
        ),
    )
    ctx.builder.add_embed(embed)


def _plain(value: Any) -> str:
    return "" if value is None else str(value)


REPO_WATCHED = (
    ("name", "Name"),
    ("website", "Website"),
    ("language", "Language"),
    ("description", "Description"),
)


async def _repo_updated(ctx: RuleContext) -> None:
    changes = _record(_need(ctx.payload, "changes"), "changes")
    lines = []
    for key, label in REPO_WATCHED:
        if key in changes:
            change = _record(changes[key], f"changes.{key}")
            old, new = _plain(change.get("old")), _plain(change.get("new"))
            lines.append(f'**{label}:** "{old}" -> "{new}"')

    repo = _repo_name(ctx)
    ctx.builder.add_embed(
        Embed(
            author=actor_author(ctx),
            title=f"[{repo}] General information updated",
            url=f"{ctx.base_link}{repo}",
            description="\n".join(lines),
        )
    )


async def _repo_commit_comment_created(ctx: RuleContext) -> None:
    repo = _repo_name(ctx)
    commit_hash = _need(ctx.payload, "commit", "hash")
    html = _need(ctx.payload, "comment", "content", "html")
    ctx.builder.add_embed(
        Embed(
            author=actor_author(ctx),
            title=f"[{repo}] New comment on commit `{short_hash(commit_hash)}`",
            description=clean_html(html),
            url=f"{ctx.base_link}{repo}/commits/{commit_hash}",
        )
    )


COMMIT_STATUS_COLORS = {
    "SUCCESSFUL": SUCCESS_COLOR,
    "FAILED": FAILURE_COLOR,
    "STOPPED": FAILURE_COLOR,
    "INPROGRESS": PENDING_COLOR,
}


def _commit_status_embed(ctx: RuleContext) -> Embed:
    status = _need(ctx.payload, "commit_status")
    state = _need(status, "state", where="commit_status")
    return Embed(
        title=status.get("name"),
        url=status.get("url"),
        description=f"**State:** {state}\n{status.get('description') or ''}",
        color=COMMIT_STATUS_COLORS.get(str(state).upper(), DEFAULT_COLOR),
    )


async def _repo_commit_status_created(ctx: RuleContext) -> None:
    ctx.builder.add_embed(_commit_status_embed(ctx))


async def _repo_commit_status_updated(ctx: RuleContext) -> None:
    embed = _commit_status_embed(ctx)
    embed.author = actor_author(ctx)
    ctx.builder.add_embed(embed)


# ---------------------------------------------------------------------------
# Issue rules
# ---------------------------------------------------------------------------


def _issue_title(ctx: RuleContext, verb: str) -> str:
    issue_id = _need(ctx.payload, "issue", "id")
    title = _dig(ctx.payload, ("issue", "title")) or ""
    return f"[{_repo_name(ctx)}] {verb}: #{issue_id} {title}".rstrip()


def _user_link(user: Mapping[str, Any]) -> str:
    name = user.get("display_name")
    href = _dig(user, ("links", "html", "href"))
    return f"[`{name}`]({href})" if href else f"`{name}`"


async def _issue_created(ctx: RuleContext) -> None:
    issue = _need(ctx.payload, "issue")
    embed = Embed(
        author=actor_author(ctx),
        title=_issue_title(ctx, "Issue opened"),
        url=issue_url(ctx),
    )

    lines = []
    assignee = issue.get("assignee")
    if assignee is not None:
        assignee = _record(assignee, "issue.assignee")
    if assignee is not None and assignee.get("display_name") is not None:
        lines.append(f"**Assignee:** {_user_link(assignee)}")
    lines.append(f"**State:** `{title_case(issue.get('state'))}`")
    lines.append(f"**Kind:** `{title_case(issue.get('kind'))}`")
    lines.append(f"**Priority:** `{title_case(issue.get('priority'))}`")
    for key in ("component", "milestone", "version"):
        name = _dig(issue, (key, "name"))
        if name is not None:
            lines.append(f"**{key.capitalize()}:** `{title_case(name)}`")

    raw = _dig(issue, ("content", "raw"))
    if raw:
        rewritten = await ctx.markdown.rewrite(truncate(raw), embed)
        lines.append(f"**Content:**\n{rewritten}")

    embed.description = "\n".join(lines)
    ctx.builder.add_embed(embed)


ISSUE_ACTOR_CHANGES = ("Assignee", "Responsible")
ISSUE_PROPERTY_CHANGES = ("Kind", "Priority", "Status", "Component", "Milestone", "Version")


def _change_value(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        return value.get("name")
    return value


async def _issue_updated(ctx: RuleContext) -> None:
    embed = Embed(
        author=actor_author(ctx),
        title=_issue_title(ctx, "Issue updated"),
        url=issue_url(ctx),
    )
    changes = ctx.payload.get("changes")
    changes = {} if changes is None else _record(changes, "changes")
    lines = []

    for label in ISSUE_ACTOR_CHANGES:
        pair = changes.get(label.lower())
        if pair is None:
            continue
        pair = _record(pair, f"changes.{label.lower()}")
        names = []
        for side in ("old", "new"):
            user = pair.get(side)
            if isinstance(user, Mapping) and user.get("display_name") is not None:
                names.append(_user_link(user))
            else:
                names.append(UNASSIGNED)
        if names == [UNASSIGNED, UNASSIGNED]:
            continue
        lines.append(f"**{label}:** {names[0]} {ARROW} {names[1]}")

    for label in ISSUE_PROPERTY_CHANGES:
        key = label.lower()
        if key not in changes:
            continue
        prop = _record(changes[key], f"changes.{key}")
        old = title_case(_change_value(prop.get("old")))
        new = title_case(_change_value(prop.get("new")))
        lines.append(f"**{label}:** `{old}` {ARROW} `{new}`")

    if "content" in changes:
        new_content = _record(changes["content"], "changes.content").get("new") or ""
        rewritten = await ctx.markdown.rewrite(truncate(new_content), embed)
        lines.append(f"**New Content:** \n{rewritten}")

    embed.description = "\n".join(lines)
    ctx.builder.add_embed(embed)


async def _issue_comment_created(ctx: RuleContext) -> None:
    issue_id = _need(ctx.payload, "issue", "id")
    title = _dig(ctx.payload, ("issue", "title")) or ""
    raw = _need(ctx.payload, "comment", "content", "raw")
    embed = Embed(
        author=actor_author(ctx),
        title=f"[{_repo_name(ctx)}] New comment on issue #{issue_id}: {title}",
        url=issue_url(ctx),
    )
    embed.description = await ctx.markdown.rewrite(truncate(raw), embed)
    ctx.builder.add_embed(embed)


# ---------------------------------------------------------------------------
# Pull request rules
# ---------------------------------------------------------------------------

# event → (action phrase, emoji, color)
PULL_REQUEST_ACTIONS: dict[EventType, tuple[str, str, int]] = {
    EventType.PULL_REQUEST_CREATED: ("created", "", DEFAULT_COLOR),
    EventType.PULL_REQUEST_UPDATED: ("updated", "", DEFAULT_COLOR),
    EventType.PULL_REQUEST_APPROVED: ("approved", ":thumbsup:", SUCCESS_COLOR),
    EventType.PULL_REQUEST_UNAPPROVED: ("unapproved", ":thumbsdown:", FAILURE_COLOR),
    EventType.PULL_REQUEST_FULFILLED: ("merged", ":tada:", SUCCESS_COLOR),
    EventType.PULL_REQUEST_REJECTED: ("declined", ":no_entry:", FAILURE_COLOR),
}

PULL_REQUEST_COMMENT_VERBS: dict[EventType, str] = {
    EventType.PULL_REQUEST_COMMENT_CREATED: "New",
    EventType.PULL_REQUEST_COMMENT_UPDATED: "Updated",
    EventType.PULL_REQUEST_COMMENT_DELETED: "Deleted",
}


def _pull_request_title(ctx: RuleContext, prefix: str) -> str:
    pr_id = _need(ctx.payload, "pullrequest", "id")
    title = _dig(ctx.payload, ("pullrequest", "title")) or ""
    return f"[{_repo_name(ctx)}] {prefix}: #{pr_id} {title}".rstrip()


async def format_pull_request(
    ctx: RuleContext, *, action: str, emoji: str = "", color: int = DEFAULT_COLOR
) -> None:
    url = pull_request_url(ctx)
    pr_id = _need(ctx.payload, "pullrequest", "id")
    await format_embed(
        ctx,
        author=extract_author(ctx),
        emoji=emoji,
        title=_dig(ctx.payload, ("pullrequest", "title")),
        content=f"{action} pull request [#{pr_id}]({url})",
        description=pull_request_description(ctx),
        url=url,
        fields=await pull_request_reviewers(ctx),
        color=color,
    )


async def _pull_request(ctx: RuleContext) -> None:
    action, emoji, color = PULL_REQUEST_ACTIONS[ctx.event]
    await format_pull_request(ctx, action=action, emoji=emoji, color=color)


async def _pull_request_comment(ctx: RuleContext) -> None:
    verb = PULL_REQUEST_COMMENT_VERBS[ctx.event]
    html = _need(ctx.payload, "comment", "content", "html")
    ctx.builder.add_embed(
        Embed(
            author=extract_author(ctx),
            title=_pull_request_title(ctx, f"{verb} comment on pull request"),
            url=pull_request_url(ctx),
            description=clean_html(html),
        )
    )


async def _pull_request_changes_request_created(ctx: RuleContext) -> None:
    ctx.builder.add_embed(
        Embed(
            author=extract_author(ctx),
            title=_pull_request_title(ctx, "Changes requested for pull request"),
            url=pull_request_url(ctx),
            color=PENDING_COLOR,
        )
    )


async def _pull_request_changes_request_removed(ctx: RuleContext) -> None:
    ctx.builder.add_embed(
        Embed(
            author=extract_author(ctx),
            title=_pull_request_title(ctx, "Removed changes requested for pull request"),
            url=pull_request_url(ctx),
        )
    )


RULES: dict[EventType, Rule] = {
    EventType.REPO_PUSH: _repo_push,
    EventType.REPO_FORK: _repo_fork,
    EventType.REPO_UPDATED: _repo_updated,
    EventType.REPO_COMMIT_COMMENT_CREATED: _repo_commit_comment_created,
    EventType.REPO_COMMIT_STATUS_CREATED: _repo_commit_status_created,
    EventType.REPO_COMMIT_STATUS_UPDATED: _repo_commit_status_updated,
    EventType.ISSUE_CREATED: _issue_created,
    EventType.ISSUE_UPDATED: _issue_updated,
    EventType.ISSUE_COMMENT_CREATED: _issue_comment_created,
    EventType.PULL_REQUEST_CHANGES_REQUEST_CREATED: _pull_request_changes_request_created,
    EventType.PULL_REQUEST_CHANGES_REQUEST_REMOVED: _pull_request_changes_request_removed,
}
for _event in PULL_REQUEST_ACTIONS:
    RULES[_event] = _pull_request
for _event in PULL_REQUEST_COMMENT_VERBS:
    RULES[_event] = _pull_request_comment

_unhandled = set(EventType) - set(RULES)
if _unhandled:
    raise RuntimeError(f"No rule for event types: {sorted(e.value for e in _unhandled)}")


async def transform_event(
    event: EventType | str,
    payload: Mapping[str, Any] | None,
    *,
    users: Optional[UserResolver] = None,
    markdown: Optional[MarkdownRewriter] = None,
    base_link: Optional[str] = None,
) -> OutgoingMessage:
    """
    Run the rule registered for ``event`` over ``payload``.

    Raises
    ------
    UnknownEventError
        ``event`` is not one of the supported Bitbucket event keys.
    MalformedEventError
        A field the event type guarantees is missing from ``payload`` or
        does not have the expected shape.
    """
    event_type = event if isinstance(event, EventType) else parse_event_type(event)
    if event_type is None:
        raise UnknownEventError(f"Unsupported Bitbucket event: {event!r}")

    ctx = RuleContext(
        event=event_type,
        payload=_ensure_mapping(payload),
        users=users or UserResolver(),
        markdown=markdown or MarkdownRewriter(),
        base_link=_base_link(base_link or settings.bitbucket_base_url),
    )
    logger.debug("Running rule for %s", event_type.value)
    try:
        await RULES[event_type](ctx)
    except MissingFieldError as exc:
        raise MalformedEventError(event_type, exc.field) from exc
    except ValidationError as exc:
        errors = exc.errors()
        loc = ".".join(str(part) for part in errors[0]["loc"]) if errors else ""
        raise MalformedEventError(event_type, loc or exc.title) from exc
    return ctx.builder.build()
