import unittest

import numpy as np

from ring_outlier_filter.config import AzimuthDistanceRoi, FilterConfig, FixedXyzRoi, NoRoi
from ring_outlier_filter.errors import ConfigurationError
from ring_outlier_filter.field_decoder import FieldDecoder
from ring_outlier_filter.pointcloud import create_xyziradrt_cloud
from ring_outlier_filter.ring_partition import partition_rings
from ring_outlier_filter.visibility import VisibilityEstimator, histogram_resolution, render_frequency_image


class TestVisibilityEstimator(unittest.TestCase):
    def estimate(self, config, ring, azimuth, distance, xyz=None):
        cloud = create_xyziradrt_cloud(ring=ring, azimuth=azimuth, distance=distance, xyz=xyz)
        decoder = FieldDecoder.from_cloud(cloud)
        partition = partition_rings(decoder.ring, config.max_rings_num)
        return VisibilityEstimator(config).estimate(decoder, partition)


    def test_empty_frame_is_fully_visible(self):
        config = FilterConfig(roi=NoRoi(), vertical_bins=4, horizontal_bins=4)
        result = self.estimate(config, ring=[], azimuth=[], distance=[])

        self.assertEqual(result.visibility, 1.0)
        self.assertEqual(result.filled_cells, 0)
        self.assertEqual(result.histogram.shape, (4, 4))


    def test_saturated_frame_has_zero_visibility(self):
        config = FilterConfig(roi=NoRoi(), vertical_bins=2, horizontal_bins=4, noise_threshold=2)
        ring, azimuth = [], []
        for r in range(2):
            for sector in range(4):
                for k in range(3):
                    ring.append(r)
                    azimuth.append(sector * 9000.0 + 100.0 * (k + 1))

        result = self.estimate(config, ring=ring, azimuth=azimuth, distance=[5.0] * len(ring))

        np.testing.assert_array_equal(result.histogram, np.full((2, 4), 3))
        self.assertEqual(result.filled_cells, 8)
        self.assertEqual(result.visibility, 0.0)


    def test_cells_at_threshold_are_not_filled(self):
        config = FilterConfig(roi=NoRoi(), vertical_bins=1, horizontal_bins=4, noise_threshold=2)
        result = self.estimate(config, ring=[0, 0, 0], azimuth=[100.0, 200.0, 9100.0], distance=[5.0] * 3)

        np.testing.assert_array_equal(result.histogram, [[2, 1, 0, 0]])
        self.assertEqual(result.visibility, 1.0)


    def test_visibility_is_fraction_of_clear_cells(self):
        config = FilterConfig(roi=NoRoi(), vertical_bins=2, horizontal_bins=4, noise_threshold=0)
        result = self.estimate(config, ring=[0, 1], azimuth=[100.0, 20000.0], distance=[5.0, 5.0])

        self.assertEqual(result.filled_cells, 2)
        self.assertAlmostEqual(result.visibility, 0.75)
        self.assertEqual(result.binary_image[0, 0], 255)
        self.assertEqual(result.binary_image[1, 2], 255)


    def test_counts_clamp_to_byte_range(self):
        config = FilterConfig(roi=NoRoi(), vertical_bins=1, horizontal_bins=1)
        azimuth = np.linspace(0.0, 35000.0, 300)
        result = self.estimate(config, ring=[0] * 300, azimuth=azimuth, distance=[5.0] * 300)

        self.assertEqual(result.histogram[0, 0], 255)
        self.assertEqual(result.histogram.dtype, np.uint8)


    def test_azimuth_distance_roi_counts_points_inside_sector(self):
        roi = AzimuthDistanceRoi(min_azimuth_deg=135.0, max_azimuth_deg=225.0, max_distance=12.0)
        config = FilterConfig(roi=roi, vertical_bins=1, horizontal_bins=36, noise_threshold=0)
        result = self.estimate(config, ring=[0, 0], azimuth=[9000.0, 18000.0], distance=[5.0, 5.0])

        resolution = (22500.0 - 13500.0) / 36
        sector = int((18000.0 - 13500.0) // resolution)
        self.assertEqual(int(result.histogram.sum()), 1)
        self.assertEqual(result.histogram[0, sector], 1)


    def test_azimuth_distance_roi_ignores_far_points(self):
        config = FilterConfig(roi=AzimuthDistanceRoi(), vertical_bins=1, horizontal_bins=36)
        result = self.estimate(config, ring=[0], azimuth=[18000.0], distance=[20.0])
        self.assertEqual(int(result.histogram.sum()), 0)


    def test_xyz_roi_counts_points_inside_box(self):
        roi = FixedXyzRoi(x_min=-1.0, x_max=1.0, y_min=-1.0, y_max=1.0, z_min=-1.0, z_max=1.0)
        config = FilterConfig(roi=roi, vertical_bins=1, horizontal_bins=4)
        xyz = np.array([[0.5, 0.5, 0.0], [5.0, 0.0, 0.0]])
        result = self.estimate(config, ring=[0, 0], azimuth=[100.0, 200.0], distance=[1.0, 5.0], xyz=xyz)

        np.testing.assert_array_equal(result.histogram, [[1, 0, 0, 0]])


    def test_unordered_ring_is_binned_by_azimuth(self):
        config = FilterConfig(roi=NoRoi(), vertical_bins=1, horizontal_bins=4)
        result = self.estimate(config, ring=[0] * 4, azimuth=[30000.0, 100.0, 20000.0, 10000.0], distance=[5.0] * 4)

        np.testing.assert_array_equal(result.histogram, [[1, 1, 1, 1]])


    def test_zero_horizontal_bins_raises(self):
        with self.assertRaises(ConfigurationError):
            histogram_resolution(FilterConfig(horizontal_bins=0))
        with self.assertRaises(ConfigurationError):
            VisibilityEstimator(FilterConfig(horizontal_bins=0))


    def test_empty_azimuth_window_raises(self):
        roi = AzimuthDistanceRoi(min_azimuth_deg=180.0, max_azimuth_deg=180.0)
        with self.assertRaises(ConfigurationError):
            VisibilityEstimator(FilterConfig(roi=roi))


    def test_ring_outside_histogram_raises(self):
        config = FilterConfig(roi=NoRoi(), vertical_bins=2, horizontal_bins=4)
        with self.assertRaises(ConfigurationError):
            self.estimate(config, ring=[0, 3], azimuth=[100.0, 100.0], distance=[5.0, 5.0])


    def test_frequency_image_is_colorized_grid(self):
        histogram = np.array([[0, 10], [60, 255]], dtype=np.uint8)
        image = render_frequency_image(histogram)

        self.assertEqual(image.shape, (2, 2, 3))
        self.assertEqual(image.dtype, np.uint8)
