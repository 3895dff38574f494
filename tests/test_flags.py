import pytest

from blepairing.flags import AuthReq, IOCap, KeyDistribution


def test_auth_req_decodes_local_authreq():
    req = AuthReq(0b00101101)
    assert req.bonding is True
    assert req.mitm is True
    assert req.sc is True
    assert req.keypress is False
    assert req.ct2 is True


def test_auth_req_default_is_empty():
    req = AuthReq()
    assert int(req) == 0
    assert not any([req.bonding, req.mitm, req.sc, req.keypress, req.ct2])


@pytest.mark.parametrize("flag", ["bonding", "mitm", "sc", "keypress", "ct2"])
def test_auth_req_set_and_clear_round_trip(flag):
    req = AuthReq(0)
    setattr(req, flag, True)
    assert getattr(req, flag) is True
    assert bin(req.octet).count("1") == 1
    setattr(req, flag, False)
    assert getattr(req, flag) is False
    assert req.octet == 0


def test_auth_req_clear_keeps_other_bits():
    req = AuthReq(0xFF)
    req.mitm = False
    assert req.mitm is False
    assert req.bonding is True
    assert req.octet == 0xFF & ~0b00000100


def test_key_distribution_id_key():
    kd = KeyDistribution()
    kd.id_key = True
    assert kd.octet == 0b00000010
    assert kd.id_key is True
    assert kd.enc_key is False
    assert kd.sign_key is False
    assert kd.link_key is False


@pytest.mark.parametrize("flag", ["enc_key", "id_key", "sign_key", "link_key"])
def test_key_distribution_round_trip(flag):
    kd = KeyDistribution(0)
    setattr(kd, flag, True)
    copy = KeyDistribution(kd.octet)
    assert copy == kd
    assert getattr(copy, flag) is True
    setattr(copy, flag, False)
    assert copy.octet == 0


def test_setting_octet_replaces_all_bits():
    kd = KeyDistribution(0b1111)
    kd.octet = 0b0100
    assert kd.sign_key is True
    assert kd.enc_key is False
    assert kd.id_key is False


@pytest.mark.parametrize("bad", [-1, 256])
def test_octet_out_of_range_raises(bad):
    with pytest.raises(ValueError):
        AuthReq(bad)
    kd = KeyDistribution()
    with pytest.raises(ValueError):
        kd.octet = bad


def test_different_field_types_are_not_equal():
    assert AuthReq(2) != KeyDistribution(2)
    assert AuthReq(2) == AuthReq(2)


def test_iocap_from_octet():
    assert IOCap(0x03) is IOCap.NO_INPUT_NO_OUTPUT
    assert IOCap(0x00) is IOCap.DISPLAY_ONLY
    with pytest.raises(ValueError):
        IOCap(5)