"""Tests for the Prefect flow wiring."""

import pytest

from evpages.core.errors import DatasetUnavailable
from evpages.pipeline.flows import content_flow, load_datasets_task, seed_flow


class TestFlows:
    def test_flow_names(self):
        assert seed_flow.name == "seed-localities"
        assert content_flow.name == "regenerate-content"

    def test_load_task_reads_data_dir(self, data_dir):
        datasets = load_datasets_task.fn(str(data_dir))
        assert len(datasets.localities) == 3
        assert "CA" in datasets.rates

    def test_load_task_missing_dir_fails(self, tmp_path):
        with pytest.raises(DatasetUnavailable):
            load_datasets_task.fn(str(tmp_path / "absent"))
