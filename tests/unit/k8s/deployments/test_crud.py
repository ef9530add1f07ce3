import copy

import pytest

from tether.common.constants import Annotations, Labels
from tether.common.exceptions import AmbiguousMatchError, CorruptStateError, NotFoundError
from tether.k8s.deployments import crud
from tether.k8s.deployments.sandbox import build_sandbox_manifest
from tether.k8s.deployments.translate import translate
from tether.model.dev import Dev
from tether.model.selector import LabelSelector, NameSelector


class TestGet:
    @pytest.mark.asyncio
    async def test_by_name(self, mock_api, deployment_factory):
        mock_api.deployments["web"] = deployment_factory("web")

        d = await crud.get(mock_api, NameSelector(name="web"))

        assert d["metadata"]["name"] == "web"
        mock_api.list_deployments.assert_not_called()

    @pytest.mark.asyncio
    async def test_by_name_not_found(self, mock_api):
        with pytest.raises(NotFoundError):
            await crud.get(mock_api, NameSelector(name="web"))

    @pytest.mark.asyncio
    async def test_by_labels(self, mock_api, deployment_factory):
        mock_api.deployments["web"] = deployment_factory("web")
        mock_api.deployments["db"] = deployment_factory("db")

        d = await crud.get(mock_api, LabelSelector(labels={"app": "db"}))

        assert d["metadata"]["name"] == "db"
        mock_api.list_deployments.assert_awaited_once_with("app=db")

    @pytest.mark.asyncio
    async def test_by_labels_no_match(self, mock_api, deployment_factory):
        mock_api.deployments["web"] = deployment_factory("web")

        with pytest.raises(NotFoundError):
            await crud.get(mock_api, LabelSelector(labels={"app": "db"}))

    @pytest.mark.asyncio
    async def test_by_labels_ambiguous(self, mock_api, deployment_factory):
        for name in ("web-a", "web-b"):
            d = deployment_factory(name)
            d["metadata"]["labels"]["tier"] = "frontend"
            mock_api.deployments[name] = d

        with pytest.raises(AmbiguousMatchError, match="Found '2' deployments instead of 1"):
            await crud.get(mock_api, LabelSelector(labels={"tier": "frontend"}))


class TestGetTranslations:
    @pytest.mark.asyncio
    async def test_interactive_and_service(self, mock_api, web_manifest, deployment_factory):
        web = deployment_factory("web", replicas=2)
        mock_api.deployments["worker"] = deployment_factory("worker", replicas=3)

        translations = await crud.get_translations(mock_api, web_manifest, web)

        assert list(translations) == ["web", "worker"]
        assert translations["web"].interactive
        assert translations["web"].marker == "tether.yml"
        assert translations["web"].replicas == 2
        assert translations["web"].deployment is web
        assert not translations["worker"].interactive
        assert translations["worker"].name == "web"
        assert translations["worker"].marker == ""
        assert translations["worker"].replicas == 3
        assert translations["worker"].rules[0].image == "worker:latest"

    @pytest.mark.asyncio
    async def test_missing_service_skipped(self, mock_api, web_manifest, deployment_factory):
        translations = await crud.get_translations(mock_api, web_manifest, deployment_factory("web"))

        assert list(translations) == ["web"]

    @pytest.mark.asyncio
    async def test_rules_grouped_by_deployment(self, mock_api, deployment_factory):
        dev = Dev.read(
            """
name: web
container: api
services:
  - name: web
    container: worker
"""
        )
        web = deployment_factory("web", container="api")
        mock_api.deployments["web"] = web

        translations = await crud.get_translations(mock_api, dev, web)

        assert list(translations) == ["web"]
        assert [rule.container for rule in translations["web"].rules] == ["api", "worker"]
        assert translations["web"].interactive


class TestDeploy:
    @pytest.mark.asyncio
    async def test_force_create(self, mock_api, deployment_factory):
        await crud.deploy(mock_api, deployment_factory("web"), force_create=True)

        mock_api.create_deployment.assert_awaited_once()
        mock_api.replace_deployment.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_clears_resource_version(self, mock_api, deployment_factory):
        d = deployment_factory("web")

        await crud.deploy(mock_api, d)

        body = mock_api.replace_deployment.await_args.args[0]
        assert "resourceVersion" not in body["metadata"]
        assert "status" not in body
        mock_api.create_deployment.assert_not_called()


class TestDevModeOff:
    @pytest.mark.asyncio
    async def test_translation_path(self, mock_api, web_manifest, deployment_factory, dev_mode_config):
        d = deployment_factory("web", replicas=2)
        translations = await crud.get_translations(mock_api, web_manifest, d)
        translate(translations["web"], dev_mode_config)
        translated = copy.deepcopy(d)

        assert crud.is_dev_mode_on(d)
        assert await crud.dev_mode_off(mock_api, d)

        restored = mock_api.deployments["web"]
        assert restored["spec"]["replicas"] == 2
        assert Labels.DEV not in restored["metadata"]["labels"]
        assert restored["metadata"]["annotations"] == {}
        assert Annotations.TRANSLATION not in restored["spec"]["template"]["metadata"]["annotations"]
        # the translated containers are not reverted on this path
        assert restored["spec"]["template"]["spec"] == translated["spec"]["template"]["spec"]
        assert not crud.is_dev_mode_on(restored)

    @pytest.mark.asyncio
    async def test_snapshot_path_restores_exactly(self, mock_api, web_manifest, dev_mode_config):
        sandbox = build_sandbox_manifest(web_manifest, "default", dev_mode_config)
        original = copy.deepcopy(sandbox)
        translations = await crud.get_translations(mock_api, web_manifest, sandbox)
        translate(translations["web"], dev_mode_config)
        await crud.deploy(mock_api, sandbox, force_create=True)

        live = await mock_api.get_deployment("web")
        assert await crud.dev_mode_off(mock_api, live)

        assert mock_api.deployments["web"] == original

    @pytest.mark.asyncio
    async def test_not_in_dev_mode(self, mock_api, deployment_factory):
        d = deployment_factory("web")

        assert not await crud.dev_mode_off(mock_api, d)

        mock_api.replace_deployment.assert_not_called()

    @pytest.mark.asyncio
    async def test_corrupt_snapshot(self, mock_api, deployment_factory):
        d = deployment_factory("web")
        d["metadata"]["annotations"] = {Annotations.SNAPSHOT: "{broken"}

        with pytest.raises(CorruptStateError):
            await crud.dev_mode_off(mock_api, d)


class TestDestroy:
    @pytest.mark.asyncio
    async def test_destroy(self, mock_api):
        await crud.destroy(mock_api, "web", grace_period_seconds=0)

        mock_api.delete_deployment.assert_awaited_once_with("web", grace_period_seconds=0)

    @pytest.mark.asyncio
    async def test_already_deleted(self, mock_api):
        mock_api.delete_deployment.side_effect = NotFoundError("gone")

        await crud.destroy(mock_api, "web")
