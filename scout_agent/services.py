"""Wires the execution components from one validated settings object."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from sqlmodel import Session

from scout_agent.agent.base import Agent
from scout_agent.agent.runner import FirecrawlClaudeAgent
from scout_agent.config import Settings
from scout_agent.database import get_session
from scout_agent.execution.credentials import CredentialResolver
from scout_agent.execution.dispatcher import ExecutionQueue, TriggerDispatcher
from scout_agent.execution.orchestrator import ExecutionOrchestrator
from scout_agent.execution.rate_limiter import RateLimiter
from scout_agent.execution.steps import StepTracker
from scout_agent.notifications.analytics import UsageLogger
from scout_agent.notifications.notifier import EmailNotifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    config: Settings
    dispatcher: TriggerDispatcher
    queue: ExecutionQueue
    notifier: EmailNotifier
    resolver: CredentialResolver
    step_tracker: StepTracker
    session_factory: Callable[[], Session]


def build_services(
    config: Settings,
    session_factory: Callable[[], Session] = get_session,
    agent: Optional[Agent] = None,
    queue: Optional[ExecutionQueue] = None,
) -> Services:
    resolver = CredentialResolver(session_factory)
    step_tracker = StepTracker(session_factory)
    notifier = EmailNotifier(config, session_factory)
    orchestrator = ExecutionOrchestrator(
        agent or FirecrawlClaudeAgent(config),
        config=config,
        session_factory=session_factory,
        resolver=resolver,
        step_tracker=step_tracker,
        notifier=notifier,
        usage_logger=UsageLogger(config, session_factory),
    )
    queue = queue or ExecutionQueue()
    dispatcher = TriggerDispatcher(
        RateLimiter(config, session_factory),
        orchestrator,
        queue,
        session_factory,
    )
    return Services(
        config=config,
        dispatcher=dispatcher,
        queue=queue,
        notifier=notifier,
        resolver=resolver,
        step_tracker=step_tracker,
        session_factory=session_factory,
    )
