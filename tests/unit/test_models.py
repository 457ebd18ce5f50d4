"""
Request, message, job metadata and queue model tests.
"""

import pytest
from pydantic import ValidationError

from core.models.enums import InitialEstimator, JobKind, JobStatus
from core.models.job import JobMetadata, JobStats
from core.models.queue import DeadLetterConfig, ExchangeConfig, QueueConfig
from core.models.request import ConvergenceCriteria, QuantifyRequest, QuantJobMessage
from tests.factories.model_factories import make_job_metadata, make_request


class TestConvergenceCriteria:

    def test_camel_case_payload(self):
        criteria = ConvergenceCriteria.model_validate({
            "relativeErrorTolerance": 0.01,
            "minCutOff": 1e-9,
            "maxCutOff": 1e-3,
            "consecutiveVariationThreshold": 0.05,
            "initialEstimator": "monteCarlo",
        })
        assert criteria.relative_error_tolerance == 0.01
        assert criteria.min_cut_off == 1e-9
        assert criteria.max_cut_off == 1e-3
        assert criteria.initial_estimator == InitialEstimator.MONTE_CARLO

    def test_snake_case_payload(self):
        criteria = ConvergenceCriteria(min_cut_off=0.1, initial_estimator="bdd")
        assert criteria.initial_estimator == InitialEstimator.BDD

    def test_all_fields_optional(self):
        assert ConvergenceCriteria().model_dump(exclude_none=True) == {}

    def test_min_above_max_rejected(self):
        with pytest.raises(ValidationError, match="min_cut_off"):
            ConvergenceCriteria(min_cut_off=0.5, max_cut_off=0.1)

    @pytest.mark.parametrize("field", ["relative_error_tolerance", "min_cut_off", "max_cut_off"])
    def test_probabilities_bounded(self, field):
        with pytest.raises(ValidationError):
            ConvergenceCriteria(**{field: 1.5})

    def test_unknown_estimator_rejected(self):
        with pytest.raises(ValidationError):
            ConvergenceCriteria(initial_estimator="guess")


class TestQuantifyRequest:

    def test_factory_payload_validates(self, request_data):
        request = QuantifyRequest.model_validate(request_data)
        assert request.settings == request_data["settings"]
        assert request.job_id is None

    def test_model_required(self):
        with pytest.raises(ValidationError):
            QuantifyRequest.model_validate({"settings": {}})

    def test_external_job_id_accepted(self):
        request = QuantifyRequest.model_validate(make_request(jobId="run42"))
        assert request.job_id == "run42"

    def test_external_job_id_with_delimiter_rejected(self):
        with pytest.raises(ValidationError, match="must not contain"):
            QuantifyRequest.model_validate(make_request(jobId="run-42"))

    def test_sequence_estimates_alias(self):
        request = QuantifyRequest.model_validate(make_request(sequenceEstimates={"s1": 0.1}))
        assert request.sequence_estimates == {"s1": 0.1}


class TestQuantJobMessage:

    def test_round_trips_through_json(self, request_data):
        message = QuantJobMessage(
            job_id="job-2-seq1",
            parent_job_id="job-2",
            sequence_index=1,
            request=QuantifyRequest.model_validate(request_data),
            sent_at=1700000000000,
        )
        decoded = QuantJobMessage.model_validate_json(message.model_dump_json())
        assert decoded == message

    def test_unknown_fields_rejected(self, request_data):
        with pytest.raises(ValidationError):
            QuantJobMessage.model_validate({
                "job_id": "a", "request": request_data, "sent_at": 1, "priority": 9,
            })

    def test_sent_at_required(self, request_data):
        with pytest.raises(ValidationError):
            QuantJobMessage.model_validate({"job_id": "a", "request": request_data})


class TestJobMetadata:

    def test_defaults(self):
        job = JobMetadata(job_id="abc")
        assert job.status == JobStatus.PENDING
        assert job.kind == JobKind.SINGLE
        assert job.child_job_ids == []
        assert not job.is_batch_parent

    def test_batch_parent(self, job_metadata_data):
        job = JobMetadata(**{**job_metadata_data, "kind": JobKind.BATCH})
        assert job.is_batch_parent

    def test_storage_form_drops_unset_fields(self, job_metadata_data):
        stored = JobMetadata(**job_metadata_data).to_storage()
        assert stored["status"] == "pending"
        assert "stats" not in stored
        assert "error_details" not in stored

    def test_storage_round_trip(self):
        job = JobMetadata(**make_job_metadata(
            stats=JobStats(execution_time=1200, probability=0.1),
            status=JobStatus.COMPLETED,
        ))
        assert JobMetadata.model_validate(job.to_storage()) == job

    def test_stats_accept_camel_case(self):
        stats = JobStats.model_validate({"executionTime": 5, "totalSeconds": 2.5, "exactProbability": 0.3})
        assert stats.execution_time == 5
        assert stats.total_seconds == 2.5
        assert stats.exact_probability == 0.3


class TestQueueConfig:

    def _queue(self, **overrides):
        fields = {
            "name": "q",
            "exchange": ExchangeConfig(name="q.exchange", binding_key="q", routing_key="q"),
            "dead_letter": DeadLetterConfig(
                name="q.dlq",
                exchange=ExchangeConfig(name="q.dlx", binding_key="q.dlq", routing_key="q.dlq"),
            ),
            "message_ttl": 1000,
            "max_length": 10,
        }
        fields.update(overrides)
        return QueueConfig(**fields)

    def test_queue_arguments_with_dead_letter(self):
        assert self._queue().queue_arguments() == {
            "x-message-ttl": 1000,
            "x-max-length": 10,
            "x-dead-letter-exchange": "q.dlx",
            "x-dead-letter-routing-key": "q.dlq",
        }

    def test_queue_arguments_without_optional_settings(self):
        queue = self._queue(dead_letter=None, message_ttl=None, max_length=None)
        assert queue.queue_arguments() == {}

    def test_exchange_type_validated(self):
        with pytest.raises(ValidationError):
            ExchangeConfig(name="x", type="broadcast")

    def test_exchange_type_normalized(self):
        assert ExchangeConfig(name="x", type="DIRECT").type == "direct"

    def test_prefetch_must_be_positive(self):
        with pytest.raises(ValidationError):
            self._queue(prefetch=0)
