"""
Git Tools HTTP server - health/status endpoints and GitHub/GitLab webhook receivers
"""

import hashlib
import hmac
import logging
import os
import platform
import sys
import time
from typing import Any

from fastapi import APIRouter, FastAPI, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, ValidationError

from git_tools import SERVER_NAME, SERVER_VERSION, health_check

logger = logging.getLogger(__name__)

TOOL_NAMES = [
    "add_code_comments",
    "generate_commit_message",
    "generate_daily_worklog",
    "git-status",
    "git-log",
    "git-diff",
    "git-branch",
    "git-commit",
    "health-check",
]

STARTED_AT = time.monotonic()


# ---------- Webhook payload models ----------


class GitHubUser(BaseModel):
    login: str


class GitHubRef(BaseModel):
    ref: str


class GitHubRepository(BaseModel):
    full_name: str


class GitHubPullRequest(BaseModel):
    number: int
    title: str
    user: GitHubUser
    diff_url: str
    html_url: str
    head: GitHubRef
    base: GitHubRef


class PullRequestEvent(BaseModel):
    action: str
    pull_request: GitHubPullRequest
    repository: GitHubRepository


class GitHubPusher(BaseModel):
    name: str


class PushEvent(BaseModel):
    ref: str
    repository: GitHubRepository
    commits: list[dict[str, Any]] = []
    pusher: GitHubPusher
    head_commit: dict[str, Any] | None = None


class MergeRequestAttributes(BaseModel):
    action: str | None = None
    source_branch: str | None = None
    target_branch: str | None = None


class MergeRequestEvent(BaseModel):
    object_attributes: MergeRequestAttributes


def verify_github_signature(secret: str, body: bytes, signature: str | None) -> bool:
    """Check X-Hub-Signature-256 ("sha256=<hex hmac>") against the raw body."""
    if not signature or not signature.startswith("sha256="):
        return False
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature[len("sha256="):])


async def read_payload(request: Request) -> dict[str, Any]:
    try:
        payload = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Request body must be JSON")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Request body must be a JSON object")
    return payload


# ---------- Webhook routes ----------

webhooks = APIRouter()


@webhooks.post("/github")
async def github_webhook(
    request: Request,
    x_github_event: str | None = Header(default=None),
    x_hub_signature_256: str | None = Header(default=None),
) -> dict[str, Any]:
    """GitHub webhook handler for pull request and push events"""
    secret = os.environ.get("GITHUB_WEBHOOK_SECRET")
    if secret and not verify_github_signature(secret, await request.body(), x_hub_signature_256):
        logger.warning("GitHub webhook rejected: bad signature")
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    payload = await read_payload(request)
    event = x_github_event or ""
    logger.info("GitHub webhook received: %s", event)

    try:
        if event == "pull_request" and payload.get("action") == "opened":
            pr_event = PullRequestEvent.model_validate(payload)
            pr = pr_event.pull_request
            logger.info(
                "New GitHub PR opened: %s#%d %r by %s (%s -> %s) %s",
                pr_event.repository.full_name, pr.number, pr.title, pr.user.login,
                pr.head.ref, pr.base.ref, pr.diff_url,
            )
            return {
                "message": "GitHub PR webhook received",
                "event": event,
                "action": pr_event.action,
                "pullRequest": {
                    "number": pr.number,
                    "title": pr.title,
                    "repository": pr_event.repository.full_name,
                },
                "status": "processed",
            }

        if event == "push":
            push = PushEvent.model_validate(payload)
            branch = push.ref.removeprefix("refs/heads/")
            logger.info(
                "GitHub push event: %s %s (%d commits) by %s",
                push.repository.full_name, branch, len(push.commits), push.pusher.name,
            )
            return {
                "message": "GitHub push webhook received",
                "event": event,
                "repository": push.repository.full_name,
                "branch": branch,
                "commits": len(push.commits),
                "status": "processed",
            }
    except ValidationError as e:
        logger.warning("Malformed GitHub %s payload: %s", event, e)
        raise HTTPException(status_code=400, detail=f"Malformed {event} payload")

    logger.info("GitHub event %s received but not processed", event)
    return {"message": "GitHub webhook received", "event": event, "status": "acknowledged"}


@webhooks.get("/github/health")
async def github_webhook_health() -> dict[str, Any]:
    """Health check endpoint for GitHub webhooks"""
    return {
        "service": "GitHub Webhook Handler",
        "status": "healthy",
        "timestamp": health_check()["timestamp"],
        "supportedEvents": ["pull_request", "push"],
    }


@webhooks.get("/github/test")
async def github_webhook_test() -> dict[str, Any]:
    return {
        "message": "GitHub webhook endpoint is active",
        "endpoint": "/webhook/github",
        "methods": ["POST"],
        "headers": {
            "required": ["x-github-event"],
            "optional": ["x-github-delivery", "x-hub-signature-256"],
        },
    }


@webhooks.post("/gitlab", response_class=PlainTextResponse)
async def gitlab_webhook(request: Request, x_gitlab_event: str | None = Header(default=None)) -> str:
    payload = await read_payload(request)
    if x_gitlab_event == "Merge Request Hook":
        try:
            mr = MergeRequestEvent.model_validate(payload)
        except ValidationError as e:
            logger.warning("Malformed GitLab merge request payload: %s", e)
            raise HTTPException(status_code=400, detail="Malformed Merge Request Hook payload")
        if mr.object_attributes.action == "open":
            logger.info("New GitLab MR opened: %s", mr.object_attributes.source_branch)
    return "GitLab webhook received"


# ---------- Application ----------

app = FastAPI(
    title="MCP Git Tools",
    description="Health, status and webhook endpoints for the git tools MCP server",
    version=SERVER_VERSION,
)
app.include_router(webhooks, prefix="/webhook", tags=["webhooks"])


@app.get("/")
async def root() -> dict[str, Any]:
    return {
        "message": "MCP Git Tools Server is running",
        "server": SERVER_NAME,
        "version": SERVER_VERSION,
        "health": health_check(),
        "endpoints": {"health": "/health", "status": "/status", "tools": "/tools"},
    }


@app.get("/health")
async def health() -> dict[str, str]:
    """Health check endpoint"""
    return health_check()


@app.get("/status")
async def status() -> dict[str, Any]:
    return {
        "server": SERVER_NAME,
        "version": SERVER_VERSION,
        "uptime": round(time.monotonic() - STARTED_AT, 3),
        "pid": os.getpid(),
        "platform": sys.platform,
        "pythonVersion": platform.python_version(),
    }


@app.get("/tools")
async def tools() -> dict[str, Any]:
    return {
        "tools": TOOL_NAMES,
        "count": len(TOOL_NAMES),
        "description": "Available MCP tools for Git operations",
    }
