"""Tests for outcomes, the message bus and the unit of work."""

from __future__ import annotations

from dataclasses import dataclass
from unittest import mock

from django.test import SimpleTestCase, TestCase
from rest_framework.exceptions import ValidationError

from shared.application.message_bus import MessageBus
from shared.application.uow import DjangoUnitOfWork, TransactionTimeout
from shared.domain.base import DomainEvent
from shared.domain.outcomes import ErrorKind, Failure, Outcome
from shared.interfaces.http import api_exception_handler, failure_response


@dataclass
class SomethingHappened(DomainEvent):
    name: str


class OutcomeTests(SimpleTestCase):
    def test_ok_and_fail(self) -> None:
        ok = Outcome.ok(42)
        self.assertTrue(ok.is_ok)
        self.assertEqual(ok.value, 42)
        self.assertIsNone(ok.kind)

        failed = Outcome.fail(ErrorKind.CONFLICT, "taken")
        self.assertFalse(failed.is_ok)
        self.assertEqual(failed.kind, ErrorKind.CONFLICT)
        self.assertEqual(str(failed.failure), "conflict: taken")

    def test_only_timeouts_are_retryable(self) -> None:
        self.assertEqual([kind for kind in ErrorKind if kind.retryable], [ErrorKind.TIMEOUT])


class HttpMappingTests(SimpleTestCase):
    def test_failure_kinds_map_to_status_codes(self) -> None:
        expected = {
            ErrorKind.NOT_FOUND: 404,
            ErrorKind.CONFLICT: 409,
            ErrorKind.FORBIDDEN: 403,
            ErrorKind.INVALID_REQUEST: 400,
            ErrorKind.TIMEOUT: 408,
            ErrorKind.INTERNAL: 500,
        }
        for kind, code in expected.items():
            response = failure_response(Failure(kind, "details"))
            self.assertEqual(response.status_code, code)
            self.assertEqual(response.data["code"], kind.value)

    def test_internal_failures_hide_the_message(self) -> None:
        response = failure_response(Failure(ErrorKind.INTERNAL, "psycopg exploded at line 3"))
        self.assertNotIn("psycopg", response.data["error"])

    def test_exception_handler_keeps_drf_errors_and_masks_the_rest(self) -> None:
        validation = api_exception_handler(ValidationError({"field": ["bad"]}), {})
        self.assertEqual(validation.status_code, 400)

        crash = api_exception_handler(RuntimeError("secret table name"), {"view": None})
        self.assertEqual(crash.status_code, 500)
        self.assertEqual(crash.data["code"], "internal")
        self.assertNotIn("secret", crash.data["error"])


class MessageBusTests(SimpleTestCase):
    def test_handler_errors_do_not_stop_other_handlers(self) -> None:
        bus = MessageBus()
        seen = []

        def broken(event):
            raise RuntimeError("boom")

        def recorder(event):
            seen.append(event.name)

        bus.register_event_handler(SomethingHappened, broken)
        bus.register_event_handler(SomethingHappened, recorder)
        bus.register_event_handler(SomethingHappened, recorder)

        bus.publish_events([SomethingHappened(name="first")])

        self.assertEqual(seen, ["first"])
        self.assertEqual(len(bus.handlers_for(SomethingHappened)), 2)


class UnitOfWorkTests(TestCase):
    def test_events_are_published_only_after_commit(self) -> None:
        with mock.patch("shared.application.message_bus.message_bus.publish_events") as publish:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with DjangoUnitOfWork() as uow:
                    uow.record(SomethingHappened(name="saved"))
                    publish.assert_not_called()
            self.assertEqual(len(callbacks), 1)
            published = publish.call_args.args[0]
            self.assertEqual([event.name for event in published], ["saved"])

    def test_events_are_discarded_on_rollback(self) -> None:
        with mock.patch("shared.application.message_bus.message_bus.publish_events") as publish:
            with self.captureOnCommitCallbacks(execute=True) as callbacks:
                with self.assertRaises(ValueError):
                    with DjangoUnitOfWork() as uow:
                        uow.record(SomethingHappened(name="lost"))
                        raise ValueError("abort")
            self.assertEqual(callbacks, [])
            publish.assert_not_called()

    def test_deadline(self) -> None:
        with DjangoUnitOfWork(timeout=5) as uow:
            uow.check_deadline()
        with self.assertRaises(TransactionTimeout):
            with DjangoUnitOfWork(timeout=-1) as uow:
                uow.check_deadline()
