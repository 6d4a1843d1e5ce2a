import pytest
from langchain_core.runnables import RunnableLambda

from task_assistant.core.payments import (
    CalculationFactors,
    EmployeePerformanceSnapshot,
    GeneratedEstimate,
    HistoricalPayment,
    TaskCompletionSnapshot,
)
from task_assistant.core.records import TaskPriority
from task_assistant.interfaces.langchain.estimator import (
    LLMPaymentEstimator,
    format_history,
)


@pytest.fixture
def employee() -> EmployeePerformanceSnapshot:
    return EmployeePerformanceSnapshot(
        employee_id="e1",
        full_name="Bob Smith",
        performance_score=0.7,
        on_time_rate=0.9,
        quality_score=0.8,
        hourly_rate=30.0,
        tasks_completed=7,
    )


@pytest.fixture
def task() -> TaskCompletionSnapshot:
    return TaskCompletionSnapshot(
        task_id="t1",
        title="API migration",
        priority=TaskPriority.HIGH,
        estimated_hours=10,
        complexity_multiplier=1.2,
        required_skills=["python"],
    )


def structured_llm(result, captured):
    """Chat model double whose structured output runnable records its prompt."""

    class FakeChatModel:
        def with_structured_output(self, schema):
            assert schema is GeneratedEstimate

            def respond(prompt_value):
                captured.append(prompt_value)
                return result

            return RunnableLambda(respond)

    return FakeChatModel()


class TestLLMPaymentEstimator:
    """Test suite for LLMPaymentEstimator."""

    @pytest.mark.unit
    async def test_generate_renders_inputs(self, employee, task):
        expected = GeneratedEstimate(
            estimated_amount=320.0,
            reasoning="Ten hours at $30 with a high priority bonus",
            confidence_score=0.8,
            calculation_factors=CalculationFactors(
                base_hours=10,
                performance_multiplier=0.79,
                complexity_multiplier=1.2,
                final_rate=32.0,
            ),
        )
        captured = []
        estimator = LLMPaymentEstimator(structured_llm(expected, captured))

        result = await estimator.generate(
            employee,
            task,
            [HistoricalPayment(amount=150.0, task_complexity=1.0, employee_performance=0.7)],
        )

        assert result == expected
        system, request = captured[0].to_messages()
        assert "between 0.5x and 2.0x" in system.content
        assert "Employee: Bob Smith" in request.content
        assert "- Hourly rate: $30.00" in request.content
        assert "- Actual hours: not logged" in request.content
        assert "- Required skills: python" in request.content
        assert "- $150.00 (complexity 1.0, performance 0.70)" in request.content

    @pytest.mark.unit
    async def test_generate_rejects_unstructured_output(self, employee, task):
        estimator = LLMPaymentEstimator(structured_llm({"estimated_amount": 1}, []))

        with pytest.raises(TypeError, match="Expected GeneratedEstimate"):
            await estimator.generate(employee, task, [])

    @pytest.mark.unit
    def test_format_empty_history(self):
        assert format_history([]) == "- None"
