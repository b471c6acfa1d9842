"""
===============================================================================
AHRS PROJECT - Quaternion Test Suite
===============================================================================
Tests for the Quaternion value type: identity, normalization, conjugate,
Hamilton product, vector rotation, Euler and DCM conversions, and the
small-angle error quaternion used by the filter reset.

Conversions are checked against scipy.spatial.transform.Rotation as an
independent reference (scipy uses scalar-last quaternions).
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.spatial.transform import Rotation

from core.quaternion import Quaternion


def _to_scipy(q):
    return Rotation.from_quat([q.x, q.y, q.z, q.w])


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def identity_quat():
    return Quaternion.identity()


@pytest.fixture
def quat_90z():
    """90-degree rotation about Z."""
    return Quaternion.from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2)


@pytest.fixture
def general_quat():
    """A rotation with all three Euler angles non-zero."""
    return Quaternion.from_euler(0.3, -0.4, 1.1)


# =============================================================================
# Test: Construction and normalization
# =============================================================================

class TestConstruction:
    """Identity, normalization and component access."""

    def test_identity(self, identity_quat):
        assert_allclose(identity_quat.components, [1.0, 0.0, 0.0, 0.0], atol=1e-15)
        assert identity_quat.is_unit()

    def test_normalize_on_construction(self):
        q = Quaternion(1.0, 1.0, 1.0, 1.0)
        assert_allclose(q.components, [0.5, 0.5, 0.5, 0.5], atol=1e-15)

    def test_negative_scalar_flipped(self):
        """Normalization keeps the w >= 0 representative of the rotation."""
        q = Quaternion(-1.0, 0.0, 0.0, 0.0)
        assert_allclose(q.components, [1.0, 0.0, 0.0, 0.0], atol=1e-15)

    def test_no_normalize_keeps_components(self):
        q = Quaternion(2.0, -1.0, 0.5, 0.0, normalize=False)
        assert_allclose(q.components, [2.0, -1.0, 0.5, 0.0])

    def test_normalize_method(self):
        q = Quaternion(0.0, 0.0, -3.0, 4.0, normalize=False).normalize()
        assert_allclose(q.components, [0.0, 0.0, -0.6, 0.8], atol=1e-15)
        assert q.is_unit()

    def test_normalize_method_flips_negative_scalar(self):
        q = Quaternion(-2.0, 0.0, 0.0, 2.0, normalize=False).normalize()
        assert_allclose(q.components, [np.sqrt(0.5), 0.0, 0.0, -np.sqrt(0.5)],
                        atol=1e-15)

    def test_zero_quaternion_raises(self):
        with pytest.raises(ValueError):
            Quaternion(0.0, 0.0, 0.0, 0.0)

    def test_from_array(self):
        q = Quaternion.from_array([0.0, 0.0, 0.0, 2.0])
        assert_allclose(q.components, [0.0, 0.0, 0.0, 1.0])

    def test_from_array_wrong_length_raises(self):
        with pytest.raises(ValueError):
            Quaternion.from_array([1.0, 0.0, 0.0])

    def test_components_is_copy(self, general_quat):
        comps = general_quat.components
        comps[0] = 42.0
        assert general_quat.w != 42.0


# =============================================================================
# Test: Products
# =============================================================================

class TestMultiply:
    """Hamilton product and conjugate."""

    def test_multiply_identity(self, quat_90z, identity_quat):
        assert quat_90z * identity_quat == quat_90z
        assert identity_quat * quat_90z == quat_90z

    def test_multiply_conjugate_is_identity(self, general_quat, identity_quat):
        assert general_quat * general_quat.conjugate() == identity_quat

    def test_composition_matches_scipy(self, quat_90z, general_quat):
        product = general_quat * quat_90z
        expected = (_to_scipy(general_quat) * _to_scipy(quat_90z)).as_matrix()
        assert_allclose(product.to_dcm(), expected, atol=1e-12)

    def test_two_quarter_turns_make_half_turn(self, quat_90z):
        half = quat_90z * quat_90z
        assert_allclose(half.angle_to(Quaternion.identity()), np.pi, atol=1e-7)

    def test_error_quaternion_not_normalized(self):
        qe = Quaternion.error_quaternion(np.array([0.1, -0.2, 0.3]))
        assert_allclose(qe.components, [1.0, 0.1, -0.2, 0.3])

    def test_scalar_multiplication(self, identity_quat):
        q = identity_quat * 2.0
        assert_allclose(q.components, [2.0, 0.0, 0.0, 0.0])


# =============================================================================
# Test: Rotation and conversions
# =============================================================================

class TestConversions:
    """Vector rotation, DCM and Euler angles."""

    def test_rotate_vector_90z(self, quat_90z):
        v = quat_90z.rotate_vector(np.array([1.0, 0.0, 0.0]))
        assert_allclose(v, [0.0, 1.0, 0.0], atol=1e-12)

    def test_rotate_vector_matches_dcm(self, general_quat):
        v = np.array([0.3, -1.2, 2.5])
        assert_allclose(general_quat.rotate_vector(v), general_quat.to_dcm() @ v,
                        atol=1e-12)

    def test_dcm_matches_scipy(self, general_quat):
        assert_allclose(general_quat.to_dcm(), _to_scipy(general_quat).as_matrix(),
                        atol=1e-12)

    def test_dcm_is_rotation(self, general_quat):
        dcm = general_quat.to_dcm()
        assert_allclose(dcm.T @ dcm, np.eye(3), atol=1e-12)
        assert_allclose(np.linalg.det(dcm), 1.0, atol=1e-12)

    @pytest.mark.parametrize("phi,theta,psi", [
        (0.0, 0.0, 0.0),
        (0.1, 0.2, 0.3),
        (-1.0, 0.5, 2.5),
        (2.0, -1.2, -3.0),
    ])
    def test_euler_roundtrip(self, phi, theta, psi):
        q = Quaternion.from_euler(phi, theta, psi)
        assert_allclose(q.to_euler(), (phi, theta, psi), atol=1e-12)

    def test_euler_matches_scipy(self):
        q = Quaternion.from_euler(0.2, -0.3, 0.9)
        expected = Rotation.from_euler('ZYX', [0.9, -0.3, 0.2]).as_matrix()
        assert_allclose(q.to_dcm(), expected, atol=1e-12)

    def test_from_rotation_vector_zero(self, identity_quat):
        assert Quaternion.from_rotation_vector(np.zeros(3)) == identity_quat

    def test_from_rotation_vector_matches_scipy(self):
        rv = np.array([0.2, -0.1, 0.4])
        q = Quaternion.from_rotation_vector(rv)
        assert_allclose(q.to_dcm(), Rotation.from_rotvec(rv).as_matrix(), atol=1e-12)

    def test_zero_axis_raises(self):
        with pytest.raises(ValueError):
            Quaternion.from_axis_angle(np.zeros(3), 1.0)

    def test_angle_to(self, identity_quat, quat_90z):
        assert_allclose(identity_quat.angle_to(quat_90z), np.pi / 2, atol=1e-12)

    def test_equality_sign_invariant(self, general_quat):
        negated = Quaternion.from_array(-general_quat.components, normalize=False)
        assert general_quat == negated
