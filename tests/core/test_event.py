import pytest
from pydantic import ValidationError

from component_bus.core.event import Broadcast, DirectTo, Event, EventSource, Payload, SelfOnly
from tests.helpers.components import Sidebar


class TestPayload:
    @pytest.mark.parametrize(
        "detail, args, kwargs",
        [
            (None, (), {}),
            ({"title": "Hello"}, (), {"title": "Hello"}),
            ([1, 2], (1, 2), {}),
            ("plain", ("plain",), {}),
            (7, (7,), {}),
        ],
    )
    def test_from_detail(self, detail, args, kwargs):
        """Script details become named entries for dicts and positional entries otherwise."""
        payload = Payload.from_detail(detail)
        assert payload.args == args
        assert payload.kwargs == kwargs

    def test_to_detail_shapes(self):
        """Payloads render back to a single script detail value."""
        assert Payload(kwargs={"id": 3}).to_detail() == {"id": 3}
        assert Payload(args=(1, 2)).to_detail() == [1, 2]
        assert Payload(args=(1,), kwargs={"id": 3}).to_detail() == [1, {"id": 3}]
        assert Payload().to_detail() == {}

    def test_len_counts_both_kinds(self):
        """Length counts positional and named entries."""
        assert len(Payload(args=(1, 2), kwargs={"a": 1})) == 3


class TestEvent:
    def test_defaults(self):
        """A bare event is a component-sourced Broadcast with an empty payload."""
        event = Event(name="post-created")
        assert isinstance(event.scope, Broadcast)
        assert event.is_broadcast
        assert event.origin_id is None
        assert event.source is EventSource.COMPONENT
        assert len(event.payload) == 0

    def test_is_immutable(self):
        """Events are frozen."""
        event = Event(name="post-created")
        with pytest.raises(ValidationError):
            event.name = "other"

    @pytest.mark.parametrize("name", ["", "   "])
    def test_blank_name_is_rejected(self, name):
        """Event names cannot be blank."""
        with pytest.raises(ValidationError):
            Event(name=name)

    def test_dotted_names_allowed(self):
        """Dots are plain characters in event names."""
        assert Event(name="post-updated.3").name == "post-updated.3"

    def test_self_scope_requires_origin(self):
        """A SelfOnly event needs an origin id."""
        with pytest.raises(ValidationError, match="origin"):
            Event(name="saved", scope=SelfOnly())
        assert Event(name="saved", scope=SelfOnly(), origin_id="abc").origin_id == "abc"

    def test_direct_scope_accepts_class_or_string(self):
        """Direct targets may be a class or a string."""
        by_type = Event(name="post-created", scope=DirectTo(target=Sidebar))
        by_id = Event(name="post-created", scope=DirectTo(target="abc123"))
        assert by_type.scope.target is Sidebar
        assert by_id.scope.target == "abc123"
        assert not by_type.is_broadcast

    def test_scope_discriminator_from_dict(self):
        """Scopes validate from dicts by their kind."""
        event = Event.model_validate({"name": "x", "scope": {"kind": "direct_to", "target": "sidebar"}})
        assert isinstance(event.scope, DirectTo)
        assert event.scope.target == "sidebar"

    def test_event_ids_are_unique(self):
        """Every event gets its own id."""
        assert Event(name="a").event_id != Event(name="a").event_id
