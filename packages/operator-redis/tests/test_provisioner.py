"""Tests for DockerProvisioner with a mocked Docker client."""

from unittest.mock import MagicMock, patch

import pytest
from python_on_whales.exceptions import DockerException

from operator_protocols import Role
from operator_redis.exceptions import ProvisioningError, WorkloadNotFoundError
from operator_redis.provisioner import (
    LABEL_INSTANCE,
    LABEL_ORDINAL,
    LABEL_ROLE,
    DockerProvisioner,
    is_ready,
)
from operator_redis.types import RedisCluster


def make_cluster(**spec) -> RedisCluster:
    return RedisCluster.model_validate({"metadata": {"name": "cache"}, "spec": spec})


def make_container(role, ordinal, running=True, health="healthy", ip="172.18.0.2"):
    container = MagicMock()
    container.name = f"cache-{role}-{ordinal}"
    container.config.labels = {
        LABEL_INSTANCE: "cache",
        LABEL_ROLE: role,
        LABEL_ORDINAL: str(ordinal),
    }
    container.state.running = running
    if health is None:
        container.state.health = None
    else:
        container.state.health.status = health
    container.network_settings.networks = {"cache-redis": MagicMock(ip_address=ip)}
    return container


class TestEnsureWorkload:
    """Tests for creating and repairing role workloads."""

    @pytest.mark.asyncio
    async def test_creates_missing_containers(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.network.exists.return_value = False
            mock_docker.container.list.return_value = []
            mock_docker.run.side_effect = [make_container("leader", i) for i in range(3)]

            provisioner = DockerProvisioner()
            ready = await provisioner.ensure_leader_workload(make_cluster(clusterSize=3))

            assert ready == 3
            mock_docker.network.create.assert_called_once_with(
                "cache-redis", labels={LABEL_INSTANCE: "cache"}
            )
            names = [c.kwargs["name"] for c in mock_docker.run.call_args_list]
            assert names == ["cache-leader-0", "cache-leader-1", "cache-leader-2"]

            first = mock_docker.run.call_args_list[0]
            assert first.args[0] == "redis:7.2"
            assert "--cluster-enabled" in first.args[1]
            assert first.kwargs["networks"] == ["cache-redis"]
            assert first.kwargs["labels"][LABEL_ROLE] == "leader"
            assert first.kwargs["detach"] is True

    @pytest.mark.asyncio
    async def test_server_command_carries_password_and_config(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.container.list.return_value = []
            mock_docker.run.return_value = make_container("follower", 0)

            provisioner = DockerProvisioner(password="s3cret", image="redis:7.4")
            cluster = make_cluster(
                clusterSize=1, redisFollower={"redisConfig": {"maxmemory": "64mb"}}
            )
            await provisioner.ensure_follower_workload(cluster)

            call = mock_docker.run.call_args
            command = call.args[1]
            assert call.args[0] == "redis:7.4"
            assert command[command.index("--requirepass") + 1] == "s3cret"
            assert command[command.index("--masterauth") + 1] == "s3cret"
            assert command[-2:] == ["--maxmemory", "64mb"]
            assert "-a s3cret" in call.kwargs["health_cmd"]

    @pytest.mark.asyncio
    async def test_manifest_image_wins(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.container.list.return_value = []
            mock_docker.run.return_value = make_container("leader", 0)

            await DockerProvisioner().ensure_leader_workload(
                make_cluster(clusterSize=1, kubernetesConfig={"image": "redis:6.2"})
            )

            assert mock_docker.run.call_args.args[0] == "redis:6.2"

    @pytest.mark.asyncio
    async def test_existing_workload_is_left_alone(self):
        """Idempotent: running healthy containers are neither recreated nor started."""
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.network.exists.return_value = True
            mock_docker.container.list.return_value = [
                make_container("leader", i) for i in range(3)
            ] + [make_container("follower", i) for i in range(3)]

            ready = await DockerProvisioner().ensure_leader_workload(make_cluster(clusterSize=3))

            assert ready == 3
            mock_docker.run.assert_not_called()
            mock_docker.container.start.assert_not_called()
            mock_docker.network.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_starts_stopped_container(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            stopped = make_container("leader", 0, running=False)
            mock_docker.container.list.return_value = [stopped]
            mock_docker.container.inspect.return_value = make_container("leader", 0)

            ready = await DockerProvisioner().ensure_leader_workload(make_cluster(clusterSize=1))

            assert ready == 1
            mock_docker.container.start.assert_called_once_with(stopped)

    @pytest.mark.asyncio
    async def test_removes_surplus_containers(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            surplus = make_container("leader", 3)
            mock_docker.container.list.return_value = [
                make_container("leader", i) for i in range(3)
            ] + [surplus]

            ready = await DockerProvisioner().ensure_leader_workload(make_cluster(clusterSize=3))

            assert ready == 3
            mock_docker.container.remove.assert_called_once_with(surplus, force=True, volumes=True)

    @pytest.mark.asyncio
    async def test_unhealthy_containers_are_not_ready(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.container.list.return_value = [
                make_container("leader", 0),
                make_container("leader", 1, health="starting"),
                make_container("leader", 2, health="unhealthy"),
            ]

            ready = await DockerProvisioner().ensure_leader_workload(make_cluster(clusterSize=3))

            assert ready == 1

    @pytest.mark.asyncio
    async def test_docker_errors_become_provisioning_errors(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.network.exists.side_effect = DockerException(["docker", "network"], 1)

            with pytest.raises(ProvisioningError) as exc_info:
                await DockerProvisioner().ensure_leader_workload(make_cluster())

            assert exc_info.value.resource == "cache leader workload"


class TestReadiness:
    """Tests for reading workload readiness."""

    @pytest.mark.asyncio
    async def test_ready_replicas(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.container.list.return_value = [
                make_container("follower", 0),
                make_container("follower", 1, running=False),
                make_container("leader", 0),
            ]

            ready = await DockerProvisioner().ready_replicas(make_cluster(), Role.FOLLOWER)

            assert ready == 1

    @pytest.mark.asyncio
    async def test_missing_workload_raises(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.container.list.return_value = [make_container("leader", 0)]

            with pytest.raises(WorkloadNotFoundError):
                await DockerProvisioner().ready_replicas(make_cluster(), Role.FOLLOWER)

    def test_is_ready_without_healthcheck(self):
        assert is_ready(make_container("leader", 0, health=None))
        assert not is_ready(make_container("leader", 0, running=False, health=None))


class TestEndpointsAndRelease:
    """Tests for addresses, auxiliary resources and cleanup."""

    @pytest.mark.asyncio
    async def test_endpoints_by_ordinal(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.container.list.return_value = [
                make_container("leader", 2, ip="172.18.0.4"),
                make_container("leader", 0, ip="172.18.0.2"),
                make_container("leader", 1, ip=""),
            ]

            endpoints = await DockerProvisioner(port=7000).endpoints(make_cluster(), Role.LEADER)

            assert endpoints == ["172.18.0.2:7000", "172.18.0.4:7000"]

    @pytest.mark.asyncio
    async def test_ensure_service_creates_network_once(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            mock_docker.network.exists.side_effect = [False, True]
            provisioner = DockerProvisioner()

            await provisioner.ensure_service(Role.LEADER, make_cluster())
            await provisioner.ensure_service(Role.FOLLOWER, make_cluster())

            mock_docker.network.create.assert_called_once()

    @pytest.mark.asyncio
    async def test_disruption_budget_is_noop(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            cluster = make_cluster(redisLeader={"podDisruptionBudget": {"enabled": True}})

            await DockerProvisioner().ensure_disruption_budget(Role.LEADER, cluster)

            assert mock_docker.mock_calls == []

    @pytest.mark.asyncio
    async def test_release_all(self):
        with patch("operator_redis.provisioner.docker") as mock_docker:
            containers = [make_container("leader", 0), make_container("follower", 0)]
            mock_docker.container.list.return_value = containers
            mock_docker.network.exists.return_value = True

            await DockerProvisioner().release_all(make_cluster())

            mock_docker.container.remove.assert_called_once_with(
                containers, force=True, volumes=True
            )
            mock_docker.network.remove.assert_called_once_with("cache-redis")
