class FakeSender:
    """Records every payload; returns ``ok`` from send()."""

    def __init__(self, ok=True):
        self.ok = ok
        self.sent = []

    def send(self, payload):
        self.sent.append(payload)
        return self.ok


class FakePublisher:

    def __init__(self):
        self.events = []

    def publish(self, channel, event, payload):
        self.events.append((channel, event, payload))

    def fetch(self, channels, since=None):
        return [e for e in self.events if e[0] in channels]


class FakeEmailSender(FakeSender):
    pass


class FakeSmsSender(FakeSender):
    pass
