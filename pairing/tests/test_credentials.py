"""Tests for the credential export envelope."""

from __future__ import annotations

import base64
import json

import pytest

from pairing.services.credentials import EXPORT_TAG, decode_credentials, encode_credentials


def test_envelope_is_tagged_base64_json():
    export = encode_credentials({"creds.json": '{"noiseKey": "abc"}'})

    assert export.startswith("Mercedes~")
    payload = json.loads(base64.b64decode(export[len(EXPORT_TAG) :]))
    assert payload == {"creds.json": '{"noiseKey": "abc"}'}


def test_decode_recovers_named_blobs():
    blobs = {"creds.json": "{}", "pre-key-1.json": '{"k": "é"}'}

    assert decode_credentials(encode_credentials(blobs)) == blobs


def test_encode_rejects_non_string_blobs():
    with pytest.raises(TypeError, match="session-x.json"):
        encode_credentials({"session-x.json": b"\xff\xfe"})


def test_empty_credentials():
    assert decode_credentials(encode_credentials({})) == {}


def test_decode_rejects_missing_tag():
    with pytest.raises(ValueError):
        decode_credentials(base64.b64encode(b"{}").decode())


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        decode_credentials("Mercedes~not*base64")
    with pytest.raises(ValueError):
        decode_credentials("Mercedes~" + base64.b64encode(b"[1, 2]").decode())
