"""Example payload: rewrites price labels in a document supplied by the host."""

from remote_loader.payload import RemoteScript, Rule, RuleExecutor


class ListDocument:
    def __init__(self, elements):
        self.elements = elements

    def select(self, matcher):
        return [e for e in self.elements if e.get("class") == matcher and not e.get("processed")]


def _rewrite_amount(element):
    element["text"] = "$99.99"
    element["processed"] = True
    return True


document = ListDocument([{"class": "amount", "text": "$12.50"}])

REMOTE_SCRIPT = RemoteScript(
    version="1.0.1",
    executor=RuleExecutor([Rule.element("update-amount", "amount", _rewrite_amount)], document),
)
REMOTE_SCRIPT.start()
