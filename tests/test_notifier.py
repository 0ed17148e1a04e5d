from unittest.mock import MagicMock

from cbutils.notifier import ChangeNotifier


class TestChangeNotifier:
    def test_notify_calls_all_subscribers(self):
        notifier = ChangeNotifier()
        a, b = MagicMock(), MagicMock()
        notifier.subscribe(a)
        notifier.subscribe(b)

        notifier.notify()

        a.assert_called_once_with()
        b.assert_called_once_with()

    def test_unsubscribe(self):
        notifier = ChangeNotifier()
        callback = MagicMock()
        unsubscribe = notifier.subscribe(callback)
        unsubscribe()
        unsubscribe()

        notifier.notify()

        callback.assert_not_called()

    def test_failing_subscriber_does_not_block_others(self, caplog):
        notifier = ChangeNotifier()
        broken = MagicMock(side_effect=RuntimeError("ui gone"))
        healthy = MagicMock()
        notifier.subscribe(broken)
        notifier.subscribe(healthy)

        notifier.notify()

        healthy.assert_called_once()
        assert "subscriber" in caplog.text

    def test_no_subscribers(self):
        ChangeNotifier().notify()
