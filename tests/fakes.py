"""In-process stand-ins for the browser runner and deployment strategies."""

import asyncio

from sites.models import DeploymentOutcome
from sites.errors import DeploymentStrategyError
from deploy.browser import BrowserSessionError, ConsoleAttempt
from deploy.strategies import DeploymentStrategy


class FakeConsoleSession:
    def __init__(self, runner):
        self.runner = runner

    async def publish(self, name, html):
        self.runner.published.append(name)
        if name in self.runner.taken or self.runner.always_conflict:
            return ConsoleAttempt(name=name, conflict=True)
        return ConsoleAttempt(name=name, conflict=False, url=f"https://{name}.edgeone.app")


class BrokenConsoleSession(FakeConsoleSession):
    async def publish(self, name, html):
        raise BrowserSessionError("page crashed")


class FakeSessionContext:
    def __init__(self, runner):
        self.runner = runner

    async def __aenter__(self):
        self.runner.opened += 1
        return self.runner.session_class(self.runner)

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.runner.closed_sessions += 1


class FakeBrowserRunner:
    """Stands in for BrowserRunner: records every name submitted to the console."""

    session_class = FakeConsoleSession

    def __init__(self, taken=(), always_conflict=False):
        self.taken = set(taken)
        self.always_conflict = always_conflict
        self.published = []
        self.opened = 0
        self.closed_sessions = 0
        self.closed = False

    def session(self):
        return FakeSessionContext(self)

    async def close(self):
        self.closed = True


class BrokenBrowserRunner(FakeBrowserRunner):
    session_class = BrokenConsoleSession


class FakeStrategy(DeploymentStrategy):
    def __init__(self, name, fail=False, domain_suffix="", delay=0.0):
        self.name = name
        self.fail = fail
        self.domain_suffix = domain_suffix
        self.delay = delay
        self.calls = []

    async def deploy(self, business_id, subdomain, artifact):
        self.calls.append(subdomain)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DeploymentStrategyError(self.name, "boom")
        domain = f"{subdomain}{self.domain_suffix}"
        return DeploymentOutcome(method=self.name, domain=domain, url=f"https://{domain}.example.app", attempted=[domain])
