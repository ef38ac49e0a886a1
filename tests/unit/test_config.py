"""Unit tests for MappingErrorConfig."""

import pytest
import yaml

from mapping_qc.core.mapping_error import MappingErrorConfig


class TestDefaults:
    """Tests for default configuration."""

    def test_default_values(self):
        """Test documented defaults."""
        config = MappingErrorConfig.default()
        assert config.mad_threshold == 2.5
        assert config.threshold_by_donor is False
        assert config.donor_key is None
        assert config.embedding_key == "X_pca"
        assert config.weights_key == "R"
        assert config.score_key == "mapping_error_score"
        assert config.qc_key == "mapping_error_QC"
        assert config.n_jobs == 1

    def test_default_is_valid(self):
        """Test defaults pass validation."""
        assert MappingErrorConfig().validate() == []


class TestValidate:
    """Tests for validate()."""

    def test_negative_mad_threshold(self):
        """Test negative multiplier is reported."""
        problems = MappingErrorConfig(mad_threshold=-0.5).validate()
        assert len(problems) == 1
        assert "mad_threshold" in problems[0]

    def test_zero_mad_threshold_allowed(self):
        """Test k = 0 (fail anything above the median) is valid."""
        assert MappingErrorConfig(mad_threshold=0.0).validate() == []

    def test_unknown_layout(self):
        """Test unknown weight layouts are reported."""
        problems = MappingErrorConfig(weights_layout="diagonal").validate()
        assert any("weights_layout" in p for p in problems)

    def test_zero_jobs(self):
        """Test n_jobs = 0 is reported."""
        assert MappingErrorConfig(n_jobs=0).validate()

    def test_donor_mode_needs_key(self):
        """Test per-donor mode requires a donor key."""
        problems = MappingErrorConfig(threshold_by_donor=True).validate()
        assert any("donor_key" in p for p in problems)

    def test_multiple_problems(self):
        """Test all problems are collected."""
        problems = MappingErrorConfig(mad_threshold=-1, n_jobs=0).validate()
        assert len(problems) == 2


class TestYaml:
    """Tests for YAML loading."""

    def test_nested_section(self, sample_config_yaml):
        """Test loading from a mapping_error section."""
        config = MappingErrorConfig.from_yaml(sample_config_yaml)
        assert config.mad_threshold == 3.0
        assert config.threshold_by_donor is True
        assert config.donor_key == "donor"
        assert config.store_distances is True
        assert config.embedding_key == "X_pca"

    def test_flat_file(self, tmp_path):
        """Test loading a file without the section header."""
        path = tmp_path / "flat.yaml"
        path.write_text(yaml.dump({"mad_threshold": 4.0, "weights_key": "soft"}))
        config = MappingErrorConfig.from_yaml(path)
        assert config.mad_threshold == 4.0
        assert config.weights_key == "soft"

    def test_empty_file(self, tmp_path):
        """Test an empty file gives defaults."""
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert MappingErrorConfig.from_yaml(path) == MappingErrorConfig()

    def test_unknown_field(self, tmp_path):
        """Test unknown keys are rejected."""
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.dump({"mad_thresh": 3.0}))
        with pytest.raises(TypeError):
            MappingErrorConfig.from_yaml(path)

    def test_to_dict_roundtrip(self, tmp_path):
        """Test to_dict output can be loaded back."""
        config = MappingErrorConfig(mad_threshold=3.5, donor_key="sample")
        path = tmp_path / "out.yaml"
        path.write_text(yaml.dump({"mapping_error": config.to_dict()}))
        assert MappingErrorConfig.from_yaml(path) == config
