import unittest

import numpy as np

from energy_source import (
    EnergySource,
    ScriptedEnergySource,
    SpectrumEnergySource,
    band_energy_from_spectrum,
    synthetic_kick_energy,
)


class TestBandEnergyFromSpectrum(unittest.TestCase):
    def setUp(self):
        # 1000 Hz sample rate, 10 bins -> 50 Hz per bin
        self.spectrum = np.arange(10, dtype=np.float64) * 10.0

    def test_mean_of_covered_bins(self):
        # bins 2..4 inclusive -> 20, 30, 40
        self.assertAlmostEqual(band_energy_from_spectrum(self.spectrum, 1000, 100.0, 200.0), 30.0)

    def test_band_clamped_to_spectrum(self):
        # bins 8..9 only
        self.assertAlmostEqual(band_energy_from_spectrum(self.spectrum, 1000, 400.0, 5000.0), 85.0)

    def test_empty_or_missing_spectrum(self):
        self.assertEqual(band_energy_from_spectrum(None, 44100, 20.0, 150.0), 0.0)
        self.assertEqual(band_energy_from_spectrum(np.array([]), 44100, 20.0, 150.0), 0.0)

    def test_inverted_band_is_silent(self):
        self.assertEqual(band_energy_from_spectrum(self.spectrum, 1000, 300.0, 200.0), 0.0)
        self.assertEqual(band_energy_from_spectrum(self.spectrum, 1000, 1000.0, 2000.0), 0.0)

    def test_non_finite_bins_skipped(self):
        spectrum = self.spectrum.copy()
        spectrum[3] = np.nan
        self.assertAlmostEqual(band_energy_from_spectrum(spectrum, 1000, 100.0, 200.0), 30.0)
        spectrum[2:5] = np.inf
        self.assertEqual(band_energy_from_spectrum(spectrum, 1000, 100.0, 200.0), 0.0)


class TestSpectrumEnergySource(unittest.TestCase):
    def test_reads_latest_spectrum(self):
        frames = [np.full(10, 5.0), np.full(10, 50.0)]
        source = SpectrumEnergySource(lambda: frames.pop(0), sample_rate=1000)
        self.assertIsInstance(source, EnergySource)
        self.assertTrue(source.is_active())
        self.assertAlmostEqual(source.band_energy(100.0, 200.0), 5.0)
        self.assertAlmostEqual(source.band_energy(100.0, 200.0), 50.0)

    def test_active_provider(self):
        playing = {"value": False}
        source = SpectrumEnergySource(lambda: None, active_provider=lambda: playing["value"])
        self.assertFalse(source.is_active())
        playing["value"] = True
        self.assertTrue(source.is_active())
        self.assertEqual(source.band_energy(20.0, 150.0), 0.0)


class TestScriptedEnergySource(unittest.TestCase):
    def test_replays_then_goes_silent(self):
        source = ScriptedEnergySource([1.0, 2.0, 3.0])
        self.assertIsInstance(source, EnergySource)
        self.assertEqual([source.band_energy(20, 150) for _ in range(5)], [1.0, 2.0, 3.0, 0.0, 0.0])
        self.assertTrue(source.exhausted)
        self.assertTrue(source.is_active())

    def test_stop_when_exhausted(self):
        source = ScriptedEnergySource([9.0], stop_when_exhausted=True)
        self.assertTrue(source.is_active())
        source.band_energy(20, 150)
        self.assertFalse(source.is_active())
        self.assertEqual(source.band_energy(20, 150), 0.0)

    def test_inactive_source(self):
        self.assertFalse(ScriptedEnergySource([1.0], active=False).is_active())


class TestSyntheticKickEnergy(unittest.TestCase):
    def test_shape_and_range(self):
        energy = synthetic_kick_energy(200, tick_ms=16.0, bpm=120.0, seed=1)
        self.assertEqual(energy.shape, (200,))
        self.assertTrue(np.all(energy >= 0.0))
        self.assertTrue(np.all(energy <= 255.0))

    def test_kick_then_release(self):
        energy = synthetic_kick_energy(64, tick_ms=16.0, bpm=120.0, seed=2)
        # t=0 is on the beat, t=480 ms is deep in the release tail
        self.assertGreater(energy[0], 190.0)
        self.assertLess(energy[30], 40.0)
        # next beat lands at 500 ms -> tick 32 (512 ms) is held
        self.assertGreater(energy[32], 190.0)

    def test_seed_is_deterministic(self):
        a = synthetic_kick_energy(100, seed=7)
        b = synthetic_kick_energy(100, seed=7)
        np.testing.assert_array_equal(a, b)


if __name__ == "__main__":
    unittest.main()
