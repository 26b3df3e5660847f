import os
import sys
import unittest
from dataclasses import replace

import numpy as np

# Add the repository root to sys.path to import the simulator modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from train_config import DEFAULT_CONFIG
from train_state import LOADING, PHASES, TrainState, create_state


class TestCreateState(unittest.TestCase):
    """Factory invariants for a fresh train"""

    def test_fresh_train_is_loading_at_summit(self):
        for n in (1, 2, 8, 20, 100):
            with self.subTest(wagons=n):
                s = create_state(n)
                self.assertEqual(s.phase, LOADING)
                self.assertEqual(s.wagon_count, n)
                self.assertEqual(s.water_fraction, 0.0)
                self.assertEqual(s.speed, 0.0)
                self.assertEqual(s.track_progress, 0.0)
                self.assertEqual(s.altitude, DEFAULT_CONFIG.summit_altitude)
                self.assertEqual(s.phase_timer, 0.0)

    def test_counters_start_at_zero(self):
        s = create_state(8)
        self.assertEqual(s.total_energy_generated, 0.0)
        self.assertEqual(s.total_energy_consumed, 0.0)
        self.assertEqual(s.total_cycles, 0)
        self.assertEqual(s.total_water_moved, 0.0)
        self.assertEqual(s.energy_generated, 0.0)
        self.assertEqual(s.energy_consumed_ascent, 0.0)

    def test_default_wagon_count(self):
        self.assertEqual(create_state().wagon_count, DEFAULT_CONFIG.default_wagon_count)
        config = replace(DEFAULT_CONFIG, default_wagon_count=3)
        self.assertEqual(create_state(config=config).wagon_count, 3)

    def test_altitude_follows_config(self):
        config = replace(DEFAULT_CONFIG, summit_altitude=3000.0)
        self.assertEqual(create_state(8, config).altitude, 3000.0)

    def test_rejects_non_positive_or_non_integer_counts(self):
        for bad in (0, -3, 2.5, True, "8"):
            with self.subTest(wagons=bad):
                with self.assertRaises(ValueError):
                    create_state(bad)

    def test_accepts_numpy_integers(self):
        s = create_state(np.int64(3))
        self.assertEqual(s.wagon_count, 3)
        self.assertIs(type(s.wagon_count), int)
        with self.assertRaises(ValueError):
            create_state(np.int64(0))
        with self.assertRaises(ValueError):
            create_state(np.float64(3.0))

    def test_states_are_independent(self):
        a = create_state(8)
        b = create_state(8)
        self.assertEqual(a, b)
        self.assertIsNot(a, b)
        a.wagon_count = 4
        self.assertEqual(b.wagon_count, 8)

    def test_phase_names(self):
        self.assertEqual(PHASES, ("loading", "descending", "unloading", "ascending"))
        self.assertIsInstance(create_state(1), TrainState)


if __name__ == '__main__':
    unittest.main()
