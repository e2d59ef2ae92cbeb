"""Tests for the Cloud IP resource and its map/unmap orchestration."""

from __future__ import annotations

import pytest
from fake_api import FakeBrightboxAPI, server_error

from boxprovider.api import (
    CloudIP,
    CloudIPMode,
    CloudIPStatus,
    PortTranslator,
    Ref,
    TransportProtocol,
)
from boxprovider.cloudip import (
    DESCRIPTOR,
    cloud_ip_resource,
    mapped_target,
    set_cloud_ip_attributes,
)
from boxprovider.config import Config, Timeouts
from boxprovider.fields import ResourceData
from boxprovider.lifecycle import Resource, build_update_options

CLOUD_IP_ID = "cip-00001"


def mapped_cloud_ip(target: str = "srv-001") -> CloudIP:
    return CloudIP(
        id=CLOUD_IP_ID,
        status=CloudIPStatus.MAPPED,
        name="web",
        mode=CloudIPMode.NAT,
        public_ip="109.107.35.1",
        public_ipv4="109.107.35.1",
        reverse_dns="cip-109-107-35-1.gb1.brightbox.com",
        fqdn="cip-00001.gb1.brightbox.com",
        server=Ref(target),
    )


def prior_state(target: str = "srv-001") -> dict[str, str]:
    return {
        "name": "web",
        "mode": "nat",
        "status": "mapped",
        "public_ip": "109.107.35.1",
        "public_ipv4": "109.107.35.1",
        "reverse_dns": "cip-109-107-35-1.gb1.brightbox.com",
        "fqdn": "cip-00001.gb1.brightbox.com",
        "target": target,
    }


@pytest.fixture
def resource(fast_config: Config) -> Resource:
    return cloud_ip_resource(fast_config)


class TestMappedTarget:
    """Tests for deriving the target from a snapshot."""

    def test_unmapped_has_no_target(self) -> None:
        assert mapped_target(CloudIP(id=CLOUD_IP_ID, status=CloudIPStatus.UNMAPPED)) is None

    def test_single_reference(self) -> None:
        cloud_ip = CloudIP(
            id=CLOUD_IP_ID, status=CloudIPStatus.MAPPED, load_balancer=Ref("lba-12345")
        )
        assert mapped_target(cloud_ip) == "lba-12345"

    def test_interface_wins_over_server(self) -> None:
        cloud_ip = CloudIP(
            id=CLOUD_IP_ID,
            status=CloudIPStatus.MAPPED,
            server=Ref("srv-12345"),
            interface=Ref("int-12345"),
        )
        assert mapped_target(cloud_ip) == "int-12345"

    def test_last_populated_reference_wins(self) -> None:
        cloud_ip = CloudIP(
            id=CLOUD_IP_ID,
            status=CloudIPStatus.MAPPED,
            server=Ref("srv-12345"),
            database_server=Ref("dbs-12345"),
            server_group=Ref("grp-12345"),
        )
        assert mapped_target(cloud_ip) == "grp-12345"


class TestSetCloudIPAttributes:
    def test_unmapped_clears_stale_target(self, resource: Resource) -> None:
        data = resource.new_data(resource_id=CLOUD_IP_ID, state=prior_state())

        diags = set_cloud_ip_attributes(
            data, CloudIP(id=CLOUD_IP_ID, status=CloudIPStatus.UNMAPPED)
        )

        assert diags == []
        assert data.snapshot()["target"] == ""
        assert data.snapshot()["status"] == "unmapped"

    def test_port_translators_flattened(self, resource: Resource) -> None:
        data = resource.new_data(resource_id=CLOUD_IP_ID)
        cloud_ip = mapped_cloud_ip()
        cloud_ip.port_translators = [
            PortTranslator(incoming=443, outgoing=8443, protocol=TransportProtocol.TCP),
            PortTranslator(incoming=53, outgoing=5353, protocol=TransportProtocol.UDP),
        ]

        set_cloud_ip_attributes(data, cloud_ip)

        translators = data.snapshot()["port_translator"]
        assert sorted(translators, key=lambda t: t["incoming"]) == [
            {"incoming": 53, "outgoing": 5353, "protocol": "udp"},
            {"incoming": 443, "outgoing": 8443, "protocol": "tcp"},
        ]

    def test_bad_field_reported_and_siblings_written(self, resource: Resource) -> None:
        data = resource.new_data(resource_id=CLOUD_IP_ID)
        cloud_ip = mapped_cloud_ip()
        cloud_ip.mode = "bridge"  # type: ignore[assignment]

        diags = set_cloud_ip_attributes(data, cloud_ip)

        assert len(diags) == 1
        assert diags[0].attribute == "mode"
        assert data.snapshot()["name"] == "web"
        assert data.snapshot()["target"] == "srv-001"


class TestCreate:
    """Create, then map to the declared target."""

    @pytest.mark.asyncio
    async def test_create_and_map(self, resource: Resource, api: FakeBrightboxAPI) -> None:
        data = resource.new_data(config={"name": "web", "target": "srv-001"})

        diags = await resource.create(api, data)

        assert diags == []
        assert data.id == CLOUD_IP_ID
        snapshot = data.snapshot()
        assert snapshot["target"] == "srv-001"
        assert snapshot["status"] == "mapped"
        assert snapshot["public_ipv4"] == "109.107.35.1"

        names = api.call_names()
        assert names[:2] == ["create_cloud_ip", "map_cloud_ip"]
        assert api.calls[1] == ("map_cloud_ip", (CLOUD_IP_ID, "srv-001"))
        assert names[2:] == ["cloud_ip", "cloud_ip"]

    @pytest.mark.asyncio
    async def test_create_without_target_does_not_map(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        data = resource.new_data(config={"name": "spare"})

        diags = await resource.create(api, data)

        assert diags == []
        assert api.call_names() == ["create_cloud_ip"]
        assert data.snapshot()["status"] == "unmapped"
        assert data.snapshot()["target"] == ""

    @pytest.mark.asyncio
    async def test_create_sends_port_translators(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        data = resource.new_data(
            config={
                "mode": "nat",
                "port_translator": [
                    {"incoming": 443, "outgoing": 8443, "protocol": "tcp"},
                    {"incoming": 80, "outgoing": 8080, "protocol": "tcp"},
                ],
            }
        )

        diags = await resource.create(api, data)

        assert diags == []
        _, (opts,) = api.calls[0]
        assert opts.mode is CloudIPMode.NAT
        assert sorted(t.incoming for t in opts.port_translators) == [80, 443]
        assert all(t.protocol is TransportProtocol.TCP for t in opts.port_translators)
        assert len(data.snapshot()["port_translator"]) == 2

    @pytest.mark.asyncio
    async def test_map_failure_keeps_created_id(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.fail("map_cloud_ip", server_error("server is shut down", status_code=409))
        data = resource.new_data(config={"target": "srv-001"})

        diags = await resource.create(api, data)

        assert data.id == CLOUD_IP_ID
        assert len(diags) == 1
        assert diags[0].summary == f"Error assigning Cloud IP {CLOUD_IP_ID} to target srv-001"
        assert "server is shut down" in diags[0].detail

    @pytest.mark.asyncio
    async def test_map_never_settles_times_out(self) -> None:
        config = Config(
            timeouts=Timeouts(create=0.2, read=5, update=5, delete=5),
            minimum_refresh_wait_seconds=0.01,
            maximum_refresh_wait_seconds=0.02,
        )
        api = FakeBrightboxAPI(settle_after=None)
        resource = cloud_ip_resource(config)
        data = resource.new_data(config={"target": "srv-001"})

        diags = await resource.create(api, data)

        assert diags.has_error()
        assert "timeout while waiting for state to become 'mapped'" in diags[0].detail
        assert "last state: 'unmapped'" in diags[0].detail

    @pytest.mark.asyncio
    async def test_create_failure_skips_map(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.fail("create_cloud_ip", server_error("limit reached", status_code=403))
        data = resource.new_data(config={"target": "srv-001"})

        diags = await resource.create(api, data)

        assert diags.has_error()
        assert data.id == ""
        assert api.call_names() == ["create_cloud_ip"]


class TestRead:
    @pytest.mark.asyncio
    async def test_read_reports_current_target(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-002"))
        data = resource.new_data(resource_id=CLOUD_IP_ID, state=prior_state("srv-001"))

        diags = await resource.read(api, data)

        assert diags == []
        assert data.snapshot()["target"] == "srv-002"

    @pytest.mark.asyncio
    async def test_read_missing_clears_id(self, resource: Resource, api: FakeBrightboxAPI) -> None:
        data = resource.new_data(resource_id=CLOUD_IP_ID, state=prior_state())

        diags = await resource.read(api, data)

        assert diags == []
        assert data.id == ""


class TestUpdate:
    """Remap on target change, then patch the other fields."""

    @pytest.mark.asyncio
    async def test_retarget_unmaps_once_then_maps_once(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        data = resource.new_data(
            resource_id=CLOUD_IP_ID,
            config={"name": "renamed", "target": "srv-002"},
            state=prior_state("srv-001"),
        )

        diags = await resource.update(api, data)

        assert diags == []
        names = api.call_names()
        assert names.count("unmap_cloud_ip") == 1
        assert names.count("map_cloud_ip") == 1
        assert names.index("unmap_cloud_ip") < names.index("map_cloud_ip")
        assert names[-1] == "update_cloud_ip"
        _, (opts,) = api.calls[-1]
        assert opts.to_dict() == {"id": CLOUD_IP_ID, "name": "renamed"}
        assert api.cloud_ips[CLOUD_IP_ID].name == "renamed"
        assert data.snapshot()["name"] == "renamed"
        assert ("map_cloud_ip", (CLOUD_IP_ID, "srv-002")) in api.calls
        assert data.snapshot()["target"] == "srv-002"
        assert api.cloud_ips[CLOUD_IP_ID].server == Ref("srv-002")

    @pytest.mark.asyncio
    async def test_unmap_failure_blocks_map(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        api.fail("unmap_cloud_ip", server_error("boom"))
        data = resource.new_data(
            resource_id=CLOUD_IP_ID,
            config={"name": "web", "target": "srv-002"},
            state=prior_state("srv-001"),
        )

        diags = await resource.update(api, data)

        assert len(diags) == 1
        assert diags[0].summary == f"Error unmapping Cloud IP {CLOUD_IP_ID}"
        assert "map_cloud_ip" not in api.call_names()
        assert api.cloud_ips[CLOUD_IP_ID].server == Ref("srv-001")

    @pytest.mark.asyncio
    async def test_field_update_runs_after_failed_remap(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        api.fail("map_cloud_ip", server_error("boom"))
        data = resource.new_data(
            resource_id=CLOUD_IP_ID,
            config={"name": "renamed", "target": "srv-002"},
            state=prior_state("srv-001"),
        )

        diags = await resource.update(api, data)

        assert len(diags) == 1
        assert diags[0].summary.startswith("Error assigning Cloud IP")
        assert api.call_names()[-1] == "update_cloud_ip"
        assert api.cloud_ips[CLOUD_IP_ID].name == "renamed"

    @pytest.mark.asyncio
    async def test_removing_target_only_unmaps(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        data = resource.new_data(
            resource_id=CLOUD_IP_ID, config={"name": "web"}, state=prior_state("srv-001")
        )

        diags = await resource.update(api, data)

        assert diags == []
        assert "unmap_cloud_ip" in api.call_names()
        assert "map_cloud_ip" not in api.call_names()
        assert data.snapshot()["target"] == ""
        assert data.snapshot()["status"] == "unmapped"

    @pytest.mark.asyncio
    async def test_adding_target_only_maps(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(CloudIP(id=CLOUD_IP_ID, status=CloudIPStatus.UNMAPPED, name="web"))
        state = {**prior_state(), "status": "unmapped", "target": ""}
        data = resource.new_data(
            resource_id=CLOUD_IP_ID, config={"name": "web", "target": "srv-001"}, state=state
        )

        diags = await resource.update(api, data)

        assert diags == []
        assert "unmap_cloud_ip" not in api.call_names()
        assert data.snapshot()["target"] == "srv-001"

    @pytest.mark.asyncio
    async def test_unchanged_target_skips_mapping(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        data = resource.new_data(
            resource_id=CLOUD_IP_ID,
            config={"name": "renamed", "target": "srv-001"},
            state=prior_state("srv-001"),
        )

        diags = await resource.update(api, data)

        assert diags == []
        assert api.call_names() == ["update_cloud_ip"]
        _, (opts,) = api.calls[0]
        assert opts.name == "renamed"

    @pytest.mark.asyncio
    async def test_reordered_port_translators_are_not_sent(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        translators = [
            {"incoming": 80, "outgoing": 8080, "protocol": "tcp"},
            {"incoming": 443, "outgoing": 8443, "protocol": "tcp"},
        ]
        data = resource.new_data(
            resource_id=CLOUD_IP_ID,
            config={"name": "web", "target": "srv-001", "port_translator": translators[::-1]},
            state={**prior_state("srv-001"), "port_translator": translators},
        )

        await resource.update(api, data)

        _, (opts,) = api.calls[0]
        assert opts.port_translators is None

    @pytest.mark.asyncio
    async def test_removed_name_is_cleared(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        data = resource.new_data(
            resource_id=CLOUD_IP_ID, config={"target": "srv-001"}, state=prior_state("srv-001")
        )

        diags = await resource.update(api, data)

        assert diags == []
        _, (opts,) = api.calls[-1]
        assert opts.name == ""
        assert api.cloud_ips[CLOUD_IP_ID].name == ""

    @pytest.mark.asyncio
    async def test_update_without_changes_sends_id_only(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        created = resource.new_data(config={"name": "web"})
        await resource.create(api, created)
        assert created.snapshot()["mode"] == "nat"

        data = resource.new_data(
            resource_id=created.id, config={"name": "web"}, state=created.snapshot()
        )
        opts, diags = build_update_options(DESCRIPTOR, data)

        assert diags == []
        assert opts.to_dict() == {"id": created.id}


class TestDelete:
    """Unmap, then delete."""

    @pytest.mark.asyncio
    async def test_mapped_cloud_ip_unmapped_then_deleted(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        data = resource.new_data(resource_id=CLOUD_IP_ID, state=prior_state("srv-001"))

        diags = await resource.delete(api, data)

        assert diags == []
        assert data.id == ""
        names = api.call_names()
        assert names[0] == "unmap_cloud_ip"
        assert names[-1] == "destroy_cloud_ip"
        assert CLOUD_IP_ID not in api.cloud_ips

    @pytest.mark.asyncio
    async def test_unmap_wait_bounded_by_update_timeout(self) -> None:
        config = Config(
            timeouts=Timeouts(create=5, read=5, update=5, delete=0.05),
            minimum_refresh_wait_seconds=0.02,
            maximum_refresh_wait_seconds=0.02,
        )
        api = FakeBrightboxAPI(settle_after=5)
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        resource = cloud_ip_resource(config)
        data = resource.new_data(resource_id=CLOUD_IP_ID, state=prior_state("srv-001"))

        diags = await resource.delete(api, data)

        assert diags == []
        assert api.call_names().count("cloud_ip") == 6
        assert CLOUD_IP_ID not in api.cloud_ips

    @pytest.mark.asyncio
    async def test_unmap_failure_prevents_delete(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(mapped_cloud_ip("srv-001"))
        api.fail("unmap_cloud_ip", server_error("boom"))
        data = resource.new_data(resource_id=CLOUD_IP_ID, state=prior_state("srv-001"))

        diags = await resource.delete(api, data)

        assert len(diags) == 1
        assert diags[0].summary == f"Error unmapping Cloud IP {CLOUD_IP_ID}"
        assert "destroy_cloud_ip" not in api.call_names()
        assert data.id == CLOUD_IP_ID

    @pytest.mark.asyncio
    async def test_unmapped_cloud_ip_deleted_directly(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        api.add_cloud_ip(CloudIP(id=CLOUD_IP_ID, status=CloudIPStatus.UNMAPPED))
        data = resource.new_data(
            resource_id=CLOUD_IP_ID, state={"status": "unmapped", "target": ""}
        )

        diags = await resource.delete(api, data)

        assert diags == []
        assert api.call_names() == ["destroy_cloud_ip"]

    @pytest.mark.asyncio
    async def test_already_deleted_is_success(
        self, resource: Resource, api: FakeBrightboxAPI
    ) -> None:
        data = resource.new_data(
            resource_id=CLOUD_IP_ID, state={"status": "unmapped", "target": ""}
        )

        diags = await resource.delete(api, data)

        assert diags == []
        assert data.id == ""


def test_resource_data_uses_configured_timeouts(fast_config: Config) -> None:
    data: ResourceData = cloud_ip_resource(fast_config).new_data()
    assert data.timeout("create") == 5
