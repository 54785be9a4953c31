#!/usr/bin/env python3
''' test generating the odr-dabmux configuration '''

import dataclasses
import json
from datetime import datetime, timezone

import pytest

import config
import dabmux_json

NOW = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


def test_document_sections(sample_config):
    ''' top level layout '''
    doc = dabmux_json.build_dabmux_document(sample_config, now=NOW)
    assert set(doc) == {
        '_comment', 'general', 'remotecontrol', 'ensemble', 'services', 'subchannels',
        'components', 'outputs'
    }
    assert doc['_comment'] == 'Generated at 2024-05-01T12:00:00+00:00 by odr-dabmux-gui'


def test_cross_references(sample_config):
    ''' one entry per service in each section, components resolve '''
    doc = dabmux_json.build_dabmux_document(sample_config, now=NOW)
    uids = [s.unique_id for s in sample_config.services]
    assert set(doc['services']) == {f'srv-{uid}' for uid in uids}
    assert set(doc['subchannels']) == {f'sub-{uid}' for uid in uids}
    assert set(doc['components']) == {f'comp-{uid}' for uid in uids}
    for comp in doc['components'].values():
        assert comp['service'] in doc['services']
        assert comp['subchannel'] in doc['subchannels']
        assert comp['user-applications'] == {'userapp': 'slideshow'}


def test_subchannel_ids_follow_order(sample_config):
    ''' ids are 1..N in service order and move with reordering '''
    doc = dabmux_json.build_dabmux_document(sample_config, now=NOW)
    assert [doc['subchannels'][f'sub-{uid}']['id'] for uid in ('alpha', 'bravo', 'charlie')] == [1, 2, 3]

    reordered = sample_config.model_copy(deep=True)
    reordered.services.reverse()
    doc2 = dabmux_json.build_dabmux_document(reordered, now=NOW)
    assert [doc2['subchannels'][f'sub-{uid}']['id'] for uid in ('alpha', 'bravo', 'charlie')] == [3, 2, 1]

    for key, sub in doc['subchannels'].items():
        other = dict(doc2['subchannels'][key])
        other['id'] = sub['id']
        assert other == sub
    assert doc['services'] == doc2['services']
    assert doc['components'] == doc2['components']


def test_subchannel_fields(sample_config):
    ''' input and buffering fields '''
    doc = dabmux_json.build_dabmux_document(sample_config, now=NOW)
    assert doc['subchannels']['sub-bravo'] == {
        'type': 'dabplus',
        'bitrate': 128,
        'id': 2,
        'protection': 3,
        'inputproto': 'edi',
        'inputuri': 'tcp://127.0.0.1:9002',
        'buffer-management': 'prebuffering',
        'buffer': 40,
        'prebuffering': 20,
    }
    assert doc['services']['srv-bravo'] == {
        'id': 0x4DA2,
        'ecc': 0xE1,
        'label': 'Radio bravo',
        'shortlabel': 'bravo',
    }


def test_general_ensemble_outputs(sample_config):
    ''' values taken from the config and the fixed defaults '''
    sample_config.tist = False
    sample_config.tist_offset = 7
    doc = dabmux_json.build_dabmux_document(sample_config, now=NOW)
    assert doc['general'] == {
        'dabmode': 1,
        'nbframes': 0,
        'syslog': False,
        'tist': False,
        'tist_offset': 7,
        'managementport': 12720,
    }
    assert doc['remotecontrol'] == {'telnetport': 12721, 'zmqendpoint': 'tcp://lo:12722'}
    assert doc['ensemble'] == {
        'id': 0x4FFF,
        'ecc': 0xE1,
        'local-time-offset': 'auto',
        'reconfig-counter': 'hash',
        'label': 'OpenDigitalRadio',
        'shortlabel': 'ODR',
    }
    assert doc['outputs'] == {
        'throttle': 'simul://',
        'zeromq': {
            'endpoint': 'tcp://*:8851',
            'allowmetadata': False
        },
        'edi': {
            'destinations': {
                'example_tcp': {
                    'protocol': 'tcp',
                    'listenport': 8951
                }
            }
        },
    }


def test_defaults_override(sample_config):
    ''' fixed values come from DabMuxDefaults '''
    defaults = dataclasses.replace(config.DEFAULT_DABMUX, buffer=80, telnetport=0)
    doc = dabmux_json.build_dabmux_document(sample_config, now=NOW, defaults=defaults)
    assert doc['subchannels']['sub-alpha']['buffer'] == 80
    assert doc['remotecontrol']['telnetport'] == 0


def test_empty_ensemble(sample_config):
    ''' no services still yields all sections '''
    sample_config.services = []
    doc = dabmux_json.build_dabmux_document(sample_config, now=NOW)
    assert doc['services'] == doc['subchannels'] == doc['components'] == {}


def test_write_dabmux_json(sample_config, tmp_path):
    ''' written file is the document as json, replacing old content '''
    target = tmp_path.joinpath('odr-dabmux.json')
    target.write_text('old content')
    path = dabmux_json.write_dabmux_json(sample_config, now=NOW)
    assert path == str(target)
    assert json.loads(target.read_text()) == dabmux_json.build_dabmux_document(sample_config,
                                                                               now=NOW)


def test_write_dabmux_json_failure(sample_config, tmp_path):
    ''' write errors carry the destination path '''
    sample_config.dabmux_config_location = str(tmp_path.joinpath('missing', 'odr-dabmux.json'))
    with pytest.raises(dabmux_json.DabMuxConfigWriteError) as excinfo:
        dabmux_json.write_dabmux_json(sample_config, now=NOW)
    assert excinfo.value.path == sample_config.dabmux_config_location
    assert sample_config.dabmux_config_location in str(excinfo.value)
