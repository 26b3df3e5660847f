import io
import math
import os
import sys
import tempfile
import unittest
from contextlib import redirect_stderr
from dataclasses import FrozenInstanceError, replace

# Add the repository root to sys.path to import the simulator modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import train_config as cfg
from train_config import DEFAULT_CONFIG, TrainConfig, load_config_from_yaml


class TestTrainConfig(unittest.TestCase):
    """Derived helix geometry and parameter validation"""

    def test_defaults_match_module_constants(self):
        c = DEFAULT_CONFIG
        self.assertEqual(c.summit_altitude, cfg.SUMMIT_ALT)
        self.assertEqual(c.valley_altitude, cfg.VALLEY_ALT)
        self.assertEqual(c.helix_turns_down, 12)
        self.assertEqual(c.default_wagon_count, 8)
        self.assertAlmostEqual(c.max_speed_down, 60 / 3.6)
        self.assertAlmostEqual(c.target_speed_up, 40 / 3.6)

    def test_derived_geometry(self):
        c = DEFAULT_CONFIG
        self.assertEqual(c.height_diff, 2000.0)
        self.assertAlmostEqual(c.height_per_turn, 2000.0 / 12)
        self.assertAlmostEqual(c.circumference, 2 * math.pi * 300.0)
        expected_turn = math.sqrt(c.circumference**2 + c.height_per_turn**2)
        self.assertAlmostEqual(c.track_length_per_turn, expected_turn)
        self.assertAlmostEqual(c.total_track_down, 12 * expected_turn)
        self.assertAlmostEqual(c.total_track_up, 12 * expected_turn)

    def test_track_angle_is_helix_grade(self):
        c = DEFAULT_CONFIG
        self.assertAlmostEqual(math.tan(c.track_angle), c.height_per_turn / c.circumference)
        # L sin θ over the whole descent recovers the height drop
        self.assertAlmostEqual(c.total_track_down * math.sin(c.track_angle), c.height_diff, places=6)
        # ~8.8 % grade
        self.assertAlmostEqual(math.tan(c.track_angle) * 100, 8.84, places=1)

    def test_ascent_turns_change_length_only(self):
        c = replace(DEFAULT_CONFIG, helix_turns_up=10)
        self.assertAlmostEqual(c.total_track_up, 10 * c.track_length_per_turn)
        self.assertAlmostEqual(c.total_track_down, DEFAULT_CONFIG.total_track_down)

    def test_config_is_frozen(self):
        with self.assertRaises(FrozenInstanceError):
            DEFAULT_CONFIG.loco_mass = 1.0

    def test_validate_accepts_defaults(self):
        self.assertIs(DEFAULT_CONFIG.validate(), DEFAULT_CONFIG)

    def test_validate_rejects_bad_values(self):
        bad = [
            dict(summit_altitude=300.0),
            dict(helix_turns_up=0),
            dict(helix_radius=0.0),
            dict(load_time=-1.0),
            dict(dynamo_efficiency=1.2),
            dict(motor_efficiency=0.0),
            dict(brake_fraction_min=0.9, brake_fraction_max=0.5),
            dict(max_speed_down=10 / 3.6),
            dict(max_speed_up=30 / 3.6),
            dict(default_wagon_count=0),
        ]
        for overrides in bad:
            with self.subTest(**overrides):
                with self.assertRaises(ValueError):
                    replace(DEFAULT_CONFIG, **overrides).validate()


class TestYamlOverrides(unittest.TestCase):
    """Loading TrainConfig overrides from a YAML file"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.path = os.path.join(self.tmp.name, "train.yaml")

    def tearDown(self):
        self.tmp.cleanup()

    def write(self, text):
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(text)

    def test_overrides_are_coerced_to_field_types(self):
        self.write("wagon_water_capacity: 50000\nhelix_turns_down: '10'\nload_time: 2.4e2\n")
        c = load_config_from_yaml(self.path)
        self.assertIsInstance(c.wagon_water_capacity, float)
        self.assertEqual(c.wagon_water_capacity, 50000.0)
        self.assertEqual(c.helix_turns_down, 10)
        self.assertIsInstance(c.helix_turns_down, int)
        self.assertEqual(c.load_time, 240.0)
        # Untouched fields keep their defaults
        self.assertEqual(c.loco_mass, DEFAULT_CONFIG.loco_mass)

    def test_unknown_keys_warn_and_are_ignored(self):
        self.write("bogus_key: 3\nloco_mass: 90000\n")
        err = io.StringIO()
        with redirect_stderr(err):
            c = load_config_from_yaml(self.path)
        self.assertIn("bogus_key", err.getvalue())
        self.assertEqual(c.loco_mass, 90000.0)

    def test_empty_file_returns_base(self):
        self.write("")
        self.assertEqual(load_config_from_yaml(self.path), DEFAULT_CONFIG)

    def test_uncoercible_value_raises(self):
        self.write("loco_mass: heavy\n")
        with self.assertRaises(ValueError):
            load_config_from_yaml(self.path)

    def test_invalid_result_raises(self):
        self.write("summit_altitude: 100\n")
        with self.assertRaises(ValueError):
            load_config_from_yaml(self.path)

    def test_non_mapping_raises(self):
        self.write("- 1\n- 2\n")
        with self.assertRaises(ValueError):
            load_config_from_yaml(self.path)

    def test_base_is_respected(self):
        base = replace(DEFAULT_CONFIG, helix_radius=250.0)
        self.write("loco_mass: 90000\n")
        c = load_config_from_yaml(self.path, base)
        self.assertEqual(c.helix_radius, 250.0)
        self.assertIsInstance(c, TrainConfig)


class TestPrintConfig(unittest.TestCase):

    def test_banner_mentions_ideal_cycle(self):
        out = io.StringIO()
        from contextlib import redirect_stdout
        with redirect_stdout(out):
            cfg.print_config(DEFAULT_CONFIG, 8)
        text = out.getvalue()
        self.assertIn("GRAVITY RAIL CONFIGURATION", text)
        self.assertIn("IDEAL CYCLE", text)


if __name__ == '__main__':
    unittest.main()
