from minikern.segments import STA_R, STA_W, STA_X, seg_asm, seg_null


def test_null_descriptor():
    assert seg_null() == bytes(8)


def test_flat_code_segment():
    assert seg_asm(STA_X | STA_R, 0, 0xFFFFFFFF) == b"\xff\xff\x00\x00\x00\x9a\xcf\x00"


def test_flat_data_segment():
    assert seg_asm(STA_W, 0, 0xFFFFFFFF) == b"\xff\xff\x00\x00\x00\x92\xcf\x00"


def test_base_is_split_across_descriptor():
    desc = seg_asm(STA_W, 0x12345678, 0)
    assert len(desc) == 8
    assert desc[2:5] == bytes([0x78, 0x56, 0x34])
    assert desc[7] == 0x12


def test_type_in_access_byte():
    for kind in (STA_W, STA_X, STA_X | STA_R):
        assert seg_asm(kind, 0, 0)[5] & 0x0F == kind
        assert seg_asm(kind, 0, 0)[5] & 0x90 == 0x90