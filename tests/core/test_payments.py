import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from task_assistant.core.errors import NotFoundError, ValidationFailure
from task_assistant.core.payments import (
    FALLBACK_CONFIDENCE,
    HISTORY_LIMIT,
    CalculationFactors,
    EmployeePerformanceSnapshot,
    GeneratedEstimate,
    HistoricalPayment,
    PaymentEstimator,
    PaymentSuggestionService,
    TaskCompletionSnapshot,
    amount_bounds,
    bounded_amount,
    collect_estimation_inputs,
    round_currency,
)
from task_assistant.core.records import PaymentStatus, TaskPriority, utc_now
from tests.fixtures.sample_data import (
    API_TASK_ID,
    BOB_ID,
    CLEANUP_PAYMENT_ID,
    CLEANUP_TASK_ID,
    LANDING_TASK_ID,
)


@pytest.fixture
def employee() -> EmployeePerformanceSnapshot:
    return EmployeePerformanceSnapshot(
        employee_id="e1",
        full_name="Alice Johnson",
        performance_score=0.9,
        on_time_rate=0.8,
        quality_score=0.85,
        hourly_rate=20.0,
    )


@pytest.fixture
def task() -> TaskCompletionSnapshot:
    return TaskCompletionSnapshot(
        task_id="t1",
        title="Landing page redesign",
        priority=TaskPriority.HIGH,
        estimated_hours=10,
        complexity_multiplier=1.2,
    )


def generated(amount: float, confidence: float = 0.9) -> GeneratedEstimate:
    return GeneratedEstimate(
        estimated_amount=amount,
        reasoning="Rate times hours with a performance bonus",
        confidence_score=confidence,
        calculation_factors=CalculationFactors(
            base_hours=10,
            performance_multiplier=0.9,
            complexity_multiplier=1.2,
            final_rate=25.0,
        ),
    )


def generator_returning(*results) -> AsyncMock:
    generator = AsyncMock()
    generator.generate.side_effect = list(results)
    return generator


class TestCurrencyHelpers:
    """Test rounding and range helpers."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value,expected", [(1.005, 1.01), (2.675, 2.68), (-1.005, -1.01), (10.0, 10.0)]
    )
    def test_round_currency_rounds_halves_away_from_zero(self, value, expected):
        assert round_currency(value) == expected

    @pytest.mark.unit
    def test_amount_bounds(self):
        assert amount_bounds(10, 20) == (100.0, 400.0)

    @pytest.mark.unit
    def test_bounded_amount_stays_inside_range(self):
        low, high = amount_bounds(1, 10.005)

        assert bounded_amount(1000, low, high) <= high
        assert bounded_amount(0, low, high) >= low
        assert bounded_amount(12.344, low, high) == 12.34


class TestFallbackEstimate:
    """Test the closed-form fallback rule."""

    @pytest.mark.unit
    def test_fallback_formula(self, employee, task):
        """10h x $20 x 0.855 x 1.2 x 1.10 rounds to $225.72."""
        estimate = PaymentEstimator().fallback(employee, task)

        assert estimate.amount == 225.72
        assert estimate.confidence == FALLBACK_CONFIDENCE
        assert estimate.source == "fallback"
        assert estimate.factors.base_hours == 10
        assert estimate.factors.performance_multiplier == pytest.approx(0.855)
        assert estimate.factors.effective_rate == pytest.approx(22.0)
        assert "Fallback calculation" in estimate.justification

    @pytest.mark.unit
    def test_fallback_prefers_logged_hours(self, employee, task):
        task = task.model_copy(update={"actual_hours": 5.0})

        estimate = PaymentEstimator().fallback(employee, task)

        assert estimate.factors.base_hours == 5.0
        assert estimate.amount == 112.86

    @pytest.mark.unit
    def test_fallback_is_clamped(self, task):
        """A weak performer on a simple task still gets at least half the base."""
        weak = EmployeePerformanceSnapshot(
            employee_id="e2",
            full_name="New Hire",
            performance_score=0.0,
            on_time_rate=0.0,
            quality_score=0.0,
            hourly_rate=20.0,
        )
        simple = task.model_copy(
            update={"complexity_multiplier": 1.0, "priority": TaskPriority.LOW}
        )

        estimate = PaymentEstimator().fallback(weak, simple)

        assert estimate.amount == 100.0

    @pytest.mark.unit
    async def test_without_generator_uses_fallback(self, employee, task):
        estimate = await PaymentEstimator().estimate(employee, task, [])

        assert estimate.source == "fallback"
        assert estimate.attempts == 0


class TestGenerativeEstimate:
    """Test the retrying generative path."""

    @pytest.mark.unit
    async def test_accepts_in_range_amount(self, employee, task):
        generator = generator_returning(generated(250.0, confidence=0.85))
        estimator = PaymentEstimator(generator, sleep=AsyncMock())

        estimate = await estimator.estimate(employee, task, [])

        assert estimate.amount == 250.0
        assert estimate.confidence == 0.85
        assert estimate.source == "generative"
        assert estimate.attempts == 1
        assert estimate.justification == "Rate times hours with a performance bonus"
        assert estimate.factors.effective_rate == 25.0

    @pytest.mark.unit
    async def test_accepts_plain_mapping(self, employee, task):
        generator = generator_returning(generated(180.0).model_dump())

        estimate = await PaymentEstimator(generator, sleep=AsyncMock()).estimate(
            employee, task, []
        )

        assert estimate.amount == 180.0
        assert estimate.source == "generative"

    @pytest.mark.unit
    @pytest.mark.parametrize("amount,expected", [(1000.0, 400.0), (10.0, 100.0)])
    async def test_out_of_range_amount_is_clamped(self, employee, task, amount, expected):
        generator = generator_returning(generated(amount))

        estimate = await PaymentEstimator(generator, sleep=AsyncMock()).estimate(
            employee, task, []
        )

        assert estimate.amount == expected
        assert "adjusted from" in estimate.justification
        assert "$100.00-$400.00" in estimate.justification

    @pytest.mark.unit
    async def test_confidence_is_clamped(self, employee, task):
        generator = generator_returning(generated(200.0, confidence=1.7))

        estimate = await PaymentEstimator(generator, sleep=AsyncMock()).estimate(
            employee, task, []
        )

        assert estimate.confidence == 1.0

    @pytest.mark.unit
    async def test_retries_with_exponential_backoff(self, employee, task):
        """Two failures wait 1s then 2s before the third attempt succeeds."""
        sleep = AsyncMock()
        generator = generator_returning(
            RuntimeError("rate limited"), RuntimeError("rate limited"), generated(210.0)
        )

        estimate = await PaymentEstimator(generator, sleep=sleep).estimate(
            employee, task, []
        )

        assert estimate.source == "generative"
        assert estimate.attempts == 3
        assert [call.args[0] for call in sleep.await_args_list] == [1, 2]

    @pytest.mark.unit
    async def test_exhausted_retries_fall_back(self, employee, task):
        sleep = AsyncMock()
        generator = AsyncMock()
        generator.generate.side_effect = RuntimeError("service unavailable")

        estimate = await PaymentEstimator(generator, sleep=sleep).estimate(
            employee, task, []
        )

        assert estimate.source == "fallback"
        assert estimate.amount == 225.72
        assert estimate.attempts == 3
        assert generator.generate.await_count == 3
        assert sleep.await_count == 2

    @pytest.mark.unit
    @pytest.mark.parametrize("amount", [-5.0, float("nan"), float("inf")])
    async def test_unusable_amount_counts_as_failure(self, employee, task, amount):
        generator = generator_returning(generated(amount), generated(200.0))

        estimate = await PaymentEstimator(generator, sleep=AsyncMock()).estimate(
            employee, task, []
        )

        assert estimate.attempts == 2
        assert estimate.amount == 200.0

    @pytest.mark.unit
    async def test_malformed_output_counts_as_failure(self, employee, task):
        generator = generator_returning({"estimated_amount": "lots"}, generated(200.0))

        estimate = await PaymentEstimator(generator, sleep=AsyncMock()).estimate(
            employee, task, []
        )

        assert estimate.attempts == 2

    @pytest.mark.unit
    async def test_slow_attempt_times_out(self, employee, task):
        async def hang(*args):
            await asyncio.sleep(10)

        generator = AsyncMock()
        generator.generate.side_effect = hang

        estimate = await PaymentEstimator(
            generator, max_attempts=1, attempt_timeout=0.01
        ).estimate(employee, task, [])

        assert estimate.source == "fallback"
        assert estimate.attempts == 1

    @pytest.mark.unit
    async def test_history_is_most_recent_first_and_capped(self, employee, task):
        now = utc_now()
        history = [
            HistoricalPayment(
                amount=100.0 + day,
                employee_performance=0.9,
                created_at=now - timedelta(days=day),
            )
            for day in range(HISTORY_LIMIT + 2)
        ]
        generator = generator_returning(generated(200.0))

        await PaymentEstimator(generator, sleep=AsyncMock()).estimate(
            employee, task, list(reversed(history))
        )

        sent = generator.generate.await_args.args[2]
        assert len(sent) == HISTORY_LIMIT
        assert [payment.amount for payment in sent] == [
            100.0 + day for day in range(HISTORY_LIMIT)
        ]


class TestEstimationInputs:
    """Test gathering estimation inputs from the datastore."""

    @pytest.mark.unit
    async def test_collects_snapshots(self, datastore):
        employee, task, history = await collect_estimation_inputs(datastore, API_TASK_ID)

        assert employee.employee_id == BOB_ID
        assert employee.hourly_rate == 30.0
        assert task.title == "API migration"
        assert task.required_skills == ["python"]
        assert task.actual_hours is None
        assert history == []

    @pytest.mark.unit
    async def test_paid_payments_become_history(self, datastore):
        await datastore.update_payment(
            CLEANUP_PAYMENT_ID, {"status": PaymentStatus.PAID, "amount_manual": 160.0}
        )

        _, _, history = await collect_estimation_inputs(datastore, API_TASK_ID)

        assert [payment.amount for payment in history] == [160.0]
        assert history[0].employee_performance == 0.7

    @pytest.mark.unit
    async def test_unassigned_task_is_rejected(self, datastore):
        with pytest.raises(ValidationFailure, match="no assignee"):
            await collect_estimation_inputs(datastore, LANDING_TASK_ID)

    @pytest.mark.unit
    async def test_missing_task(self, datastore):
        with pytest.raises(NotFoundError):
            await collect_estimation_inputs(
                datastore, "00000000-0000-4000-8000-000000000000"
            )


class TestPaymentSuggestionService:
    """Test suite for PaymentSuggestionService."""

    @pytest.mark.unit
    async def test_creates_pending_payment(self, datastore, payments):
        estimate, payment = await payments.suggest_for_task(API_TASK_ID)

        assert estimate.amount == pytest.approx(312.84)
        assert payment is not None
        assert payment.status == PaymentStatus.PENDING
        assert payment.employee_id == BOB_ID
        assert payment.amount_ai_suggested == estimate.amount
        assert payment.confidence == FALLBACK_CONFIDENCE
        assert await datastore.get_payment_for_task(API_TASK_ID) == payment

    @pytest.mark.unit
    async def test_dry_run_does_not_store(self, datastore, payments):
        _, payment = await payments.suggest_for_task(API_TASK_ID, store=False)

        assert payment is None
        assert await datastore.get_payment_for_task(API_TASK_ID) is None

    @pytest.mark.unit
    async def test_refreshes_pending_suggestion(self, datastore, payments):
        estimate, payment = await payments.suggest_for_task(CLEANUP_TASK_ID)

        assert payment.id == CLEANUP_PAYMENT_ID
        assert payment.amount_ai_suggested == estimate.amount != 150.0

    @pytest.mark.unit
    async def test_leaves_approved_payment_alone(self, datastore, payments):
        await datastore.update_payment(
            CLEANUP_PAYMENT_ID, {"status": PaymentStatus.APPROVED}
        )

        _, payment = await payments.suggest_for_task(CLEANUP_TASK_ID)

        assert payment.status == PaymentStatus.APPROVED
        assert payment.amount_ai_suggested == 150.0

    @pytest.mark.unit
    async def test_background_failures_are_logged(self, payments, caplog):
        payments.schedule_for_task(LANDING_TASK_ID)
        await payments.drain()

        assert "Payment suggestion for task" in caplog.text
