from unittest.mock import patch

import pytest
from hypothesis import given, settings

import errors
from entities.directory import ManagedDeviceRecord, RegisteredDeviceRecord
from identity_normalizer import EMPTY_DEVICE_ID, DirectoryObjectResolver, canonical_device_id

from . import strategies
from .utils import device_object, make_graph


class TestCanonicalDeviceId:
    def test_managed_device_prefers_azure_ad_device_id(self):
        record = ManagedDeviceRecord(id="m1", device_name="LAPTOP", user_id="u1", azure_ad_device_id="d1")

        assert canonical_device_id(record) == "d1"

    def test_managed_device_falls_back_to_record_id(self):
        record = ManagedDeviceRecord(id="m1", device_name="LAPTOP", user_id="u1")

        assert canonical_device_id(record) == "m1"

    def test_managed_device_all_zero_id_counts_as_missing(self):
        record = ManagedDeviceRecord(id="m1", device_name="LAPTOP", user_id="u1", azure_ad_device_id=EMPTY_DEVICE_ID)

        assert canonical_device_id(record) == "m1"

    def test_registered_device_prefers_device_id(self):
        record = RegisteredDeviceRecord.model_validate(
            {"@odata.type": "#microsoft.graph.device", "id": "o1", "deviceId": "d1", "displayName": "PHONE"}
        )

        assert canonical_device_id(record) == "d1"

    def test_registered_device_falls_back_to_record_id(self):
        record = RegisteredDeviceRecord.model_validate({"@odata.type": "#microsoft.graph.device", "id": "o1", "displayName": "PHONE"})

        assert canonical_device_id(record) == "o1"

    @pytest.mark.parametrize(
        "record",
        [
            ManagedDeviceRecord(device_name="LAPTOP", user_id="u1"),
            ManagedDeviceRecord(id="", device_name="LAPTOP", user_id="u1", azure_ad_device_id="  "),
            RegisteredDeviceRecord(name="PHONE", odata_type="#microsoft.graph.device"),
        ],
    )
    def test_record_without_identifiers_is_unresolvable(self, record):
        with pytest.raises(errors.UnresolvableDeviceIdentity):
            canonical_device_id(record)

    @settings(max_examples=100)
    @given(device=strategies.managed_device_dict())
    def test_managed_device_precedence(self, device: dict):
        record = ManagedDeviceRecord.model_validate(device)
        candidates = [v for v in (device["azureADDeviceId"], device["id"]) if v and v.strip() and v != EMPTY_DEVICE_ID]

        if candidates:
            assert canonical_device_id(record) == candidates[0]
        else:
            with pytest.raises(errors.UnresolvableDeviceIdentity):
                canonical_device_id(record)

    @settings(max_examples=100)
    @given(device=strategies.registered_object_dict())
    def test_registered_device_precedence(self, device: dict):
        record = RegisteredDeviceRecord.model_validate(device)
        candidates = [v for v in (device["deviceId"], device["id"]) if v and v.strip() and v != EMPTY_DEVICE_ID]

        if candidates:
            assert canonical_device_id(record) == candidates[0]
        else:
            with pytest.raises(errors.UnresolvableDeviceIdentity):
                canonical_device_id(record)


class TestDirectoryObjectResolver:
    def test_resolves_single_match(self):
        graph = make_graph(device_objects={"d1": [device_object("o1", "d1", "LAPTOP")]})

        resolved = DirectoryObjectResolver(graph).resolve("d1")

        assert resolved.device_object.id == "o1"
        assert resolved.device_object.device_id == "d1"
        assert resolved.device_object.display_name == "LAPTOP"
        assert not resolved.is_ambiguous

    def test_no_match_raises_not_found(self):
        graph = make_graph()

        with pytest.raises(errors.DirectoryObjectNotFound):
            DirectoryObjectResolver(graph).resolve("d1")

    def test_lookup_failure_raises_not_found(self):
        graph = make_graph()
        graph.find_device_objects.side_effect = errors.GraphRequestError("Bad Request", status_code=400)

        with pytest.raises(errors.DirectoryObjectNotFound) as exc_info:
            DirectoryObjectResolver(graph).resolve("d1")

        assert isinstance(exc_info.value.__cause__, errors.GraphRequestError)

    def test_lookups_are_memoized_per_canonical_id(self):
        graph = make_graph(device_objects={"d1": [device_object("o1", "d1")]})
        resolver = DirectoryObjectResolver(graph)

        first = resolver.resolve("d1")
        second = resolver.resolve("d1")

        assert first is second
        graph.find_device_objects.assert_called_once_with("d1")

    def test_misses_are_memoized_per_canonical_id(self):
        graph = make_graph()
        resolver = DirectoryObjectResolver(graph)

        with pytest.raises(errors.DirectoryObjectNotFound):
            resolver.resolve("d1")
        with pytest.raises(errors.DirectoryObjectNotFound):
            resolver.resolve("D1")

        graph.find_device_objects.assert_called_once_with("d1")

    def test_lookup_failures_are_not_retried_within_a_run(self):
        graph = make_graph()
        graph.find_device_objects.side_effect = errors.GraphRequestError("Bad Request", status_code=400)
        resolver = DirectoryObjectResolver(graph)

        for _ in range(2):
            with pytest.raises(errors.DirectoryObjectNotFound) as exc_info:
                resolver.resolve("d1")

        assert "Bad Request" in str(exc_info.value)
        assert graph.find_device_objects.call_count == 1

    def test_multiple_matches_use_first_and_are_flagged(self):
        # Duplicate device objects are a directory inconsistency. Picking the
        # first one is a known ambiguity, so the result is flagged rather than
        # treated as a clean match.
        graph = make_graph(device_objects={"d1": [device_object("o1", "d1"), device_object("o2", "d1")]})

        with patch("identity_normalizer.logger") as mock_logger:
            resolved = DirectoryObjectResolver(graph).resolve("d1")

        assert resolved.device_object.id == "o1"
        assert resolved.is_ambiguous
        assert resolved.match_count == 2
        mock_logger.warning.assert_called_once()
        assert mock_logger.warning.call_args[1]["extra"]["object_ids"] == ["o1", "o2"]
