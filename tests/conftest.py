#!/usr/bin/env python3
''' pytest fixtures '''

import threading

import pytest
import zmq

import models


@pytest.fixture
def sample_config(tmp_path):
    ''' a three service ensemble writing into tmp_path '''
    conf = models.Config.default()
    conf.dabmux_config_location = str(tmp_path.joinpath('odr-dabmux.json'))
    conf.services = [
        models.Service(unique_id=uid,
                       sid=sid,
                       ecc=0xE1,
                       label=f'Radio {uid}',
                       shortlabel=uid[:8],
                       input_port=port,
                       bitrate=bitrate,
                       protection=prot)
        for uid, sid, port, bitrate, prot in (
            ('alpha', 0x4DA1, 9001, 96, 2),
            ('bravo', 0x4DA2, 9002, 128, 3),
            ('charlie', 0x4DA3, 9003, 64, 1),
        )
    ]
    return conf


class FakeRCServer:
    ''' REP socket answering requests from a thread '''

    def __init__(self, handler, count=1):
        self.ctx = zmq.Context()
        self.sock = self.ctx.socket(zmq.REP)
        self.sock.setsockopt(zmq.LINGER, 0)
        port = self.sock.bind_to_random_port('tcp://127.0.0.1')
        self.endpoint = f'tcp://127.0.0.1:{port}'
        self.handler = handler
        self.count = count
        self.requests = []
        self.thread = threading.Thread(target=self._run, daemon=True)

    def _run(self):
        for _ in range(self.count):
            if not self.sock.poll(5000):
                return
            frames = self.sock.recv_multipart()
            self.requests.append(frames)
            reply = self.handler(frames)
            if reply is None:
                return
            self.sock.send_multipart(reply)

    def start(self):
        self.thread.start()
        return self

    def stop(self):
        self.thread.join(timeout=6)
        self.sock.close(linger=0)
        self.ctx.term()


@pytest.fixture
def rc_server():
    ''' factory for a running fake remote control endpoint '''
    servers = []

    def _make(handler, count=1):
        server = FakeRCServer(handler, count=count).start()
        servers.append(server)
        return server

    yield _make
    for server in servers:
        server.stop()
