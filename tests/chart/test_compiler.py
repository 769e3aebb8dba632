"""Tests for appchart.chart.compiler."""

import pydantic
import pytest
import yaml

from appchart.chart.compiler import ChartConfig, compile_application, new_chart_config
from appchart.chart.models import (
    CustomDomain,
    DeploymentManifest,
    DeploymentSpec,
    Env,
    ExposedPort,
    HealthcheckConfig,
    Hooks,
    IngressSpec,
    KubernetesConfig,
    Label,
    MetadataRule,
    MetadataTarget,
    ProcessPortsConfig,
    ProcessSpec,
    RestartHooks,
    RoutingSettings,
    TargetKind,
)
from appchart.chart.templates import TemplateSet
from appchart.core.errors import (
    EmptyDefinitionError,
    MalformedMetadataKeyError,
    MissingClusterIssuerError,
    PortsNotFoundError,
)


@pytest.fixture
def web_and_worker(make_deployment):
    return make_deployment(
        processes={"web": "gunicorn app:app", "worker": "celery worker"},
        exposed_ports=[ExposedPort(port=8080, protocol="TCP")],
    )


class TestCompileExample:
    def test_web_and_worker(self, make_app, web_and_worker, environment, settings):
        chart = compile_application(make_app(web_and_worker), environment, settings=settings)
        [deployment] = chart.deployments
        web, worker = deployment.processes

        assert web.routable and not worker.routable
        assert [p.container_port for p in web.container_ports] == [8080]
        assert [(p.port, p.target_port) for p in web.service_ports] == [(8080, 8080)]
        assert web.public_service_port == 8080
        assert Env(name="PORT", value="8080") in web.env
        assert Env(name="PORT_web", value="8080") in web.env
        assert Env(name="PORT_worker", value="8080") in worker.env

    def test_values_tree(self, make_app, web_and_worker, environment, settings):
        app = make_app(
            web_and_worker,
            env=[Env(name="DEBUG", value="0")],
            docker_registry_secret="registry-creds",
            ingress=IngressSpec(domains=[CustomDomain(name="shop.example.com")]),
        )
        values = compile_application(app, environment, settings=settings).values_dict()

        assert values["app"]["name"] == "shop"
        assert values["app"]["env"] == [{"name": "DEBUG", "value": "0"}]
        assert values["app"]["isAccessible"] is True
        assert values["app"]["ingress"] == {"http": ["shop.example.com"], "https": []}
        assert values["dockerRegistry"] == {"imagePullSecret": "registry-creds"}
        assert values["ingressController"]["clusterIssuer"] == "letsencrypt"
        assert values["ingressController"]["type"] == "traefik"

        [deployment] = values["app"]["deployments"]
        assert deployment["version"] == 1
        assert deployment["image"] == "registry.example.com/shop:v1"
        web = deployment["processes"][0]
        assert web["name"] == "web"
        assert web["cmd"] == ["gunicorn app:app"]
        assert web["units"] == 1
        assert web["containerPorts"] == [{"containerPort": 8080}]
        assert web["publicServicePort"] == 8080

    def test_default_port_without_exposed_ports(self, app, environment, settings):
        chart = compile_application(app, environment, settings=settings)
        web = chart.deployments[0].processes[0]
        assert [p.container_port for p in web.container_ports] == [8888]
        assert web.service_ports[0].name == "http-default-1"

    def test_exposed_ports_override(self, app, environment, settings):
        chart = compile_application(
            app, environment, exposed_ports={1: [ExposedPort(port=5000)]}, settings=settings
        )
        assert chart.deployments[0].processes[0].container_ports[0].container_port == 5000


class TestCompileInvariants:
    def test_idempotent(self, make_app, web_and_worker, environment, settings):
        app = make_app(
            web_and_worker,
            ingress=IngressSpec(
                generate_default_domain=True, domains=[CustomDomain(name="shop.example.com", secure=True)]
            ),
            labels=[MetadataRule(target=MetadataTarget.of(TargetKind.POD), apply={"team": "payments"})],
        )
        templates = TemplateSet(yamls={"deployment.yaml": "kind: Deployment"})
        first = compile_application(app, environment, templates=templates, settings=settings)
        second = compile_application(app, environment, templates=templates, settings=settings)
        assert first.values_yaml() == second.values_yaml()
        assert first.buffered_files(new_chart_config(app, settings)) == second.buffered_files(
            new_chart_config(app, settings)
        )

    def test_inputs_not_mutated(self, make_app, web_and_worker, environment, settings):
        app = make_app(web_and_worker)
        before = app.model_dump()
        env_before = environment.model_dump()
        compile_application(app, environment, settings=settings)
        assert app.model_dump() == before
        assert environment.model_dump() == env_before

    def test_single_routable_process_per_deployment(self, make_app, make_deployment, environment, settings):
        deployment = make_deployment(processes={"web": "serve", "worker": "work", "clock": "tick"})
        chart = compile_application(make_app(deployment), environment, settings=settings)
        [compiled] = chart.deployments
        assert [p.name for p in compiled.processes if p.routable] == ["web"]

    def test_duplicate_process_names_rejected(self):
        with pytest.raises(pydantic.ValidationError, match="duplicate process name 'web'"):
            DeploymentSpec(
                image="registry.example.com/shop:v1",
                version=1,
                processes=[ProcessSpec(name="web", cmd=["a"]), ProcessSpec(name="web", cmd=["b"])],
            )

    def test_routable_process_without_ports_fails(self, make_app, make_deployment, environment, settings):
        deployment = make_deployment(
            manifest=DeploymentManifest(kubernetes=KubernetesConfig(processes={"web": ProcessPortsConfig()})),
        )
        with pytest.raises(PortsNotFoundError) as exc_info:
            compile_application(make_app(deployment), environment, settings=settings)
        assert exc_info.value.context.process == "web"
        assert exc_info.value.context.deployment_version == 1

    def test_non_routable_process_without_ports_is_fine(self, make_app, make_deployment, environment, settings):
        deployment = make_deployment(
            processes={"web": "serve", "worker": "work"},
            manifest=DeploymentManifest(kubernetes=KubernetesConfig(processes={"worker": ProcessPortsConfig()})),
        )
        chart = compile_application(make_app(deployment), environment, settings=settings)
        worker = chart.deployments[0].processes[1]
        assert worker.container_ports == []
        assert worker.public_service_port is None
        assert "publicServicePort" not in worker.to_values()

    def test_secure_domain_without_issuer_fails(self, make_app, environment, settings):
        environment.ingress_controller.cluster_issuer = ""
        app = make_app(ingress=IngressSpec(domains=[CustomDomain(name="shop.example.com", secure=True)]))
        with pytest.raises(MissingClusterIssuerError):
            compile_application(app, environment, settings=settings)

    def test_malformed_metadata_fails_before_anything(self, make_app, environment, settings):
        app = make_app(
            annotations=[
                MetadataRule(
                    target=MetadataTarget.of(TargetKind.SERVICE), apply={"bad key": "x"}, deployment_version=42
                )
            ]
        )
        with pytest.raises(MalformedMetadataKeyError):
            compile_application(app, environment, settings=settings)

    def test_deployment_without_processes_fails(self, make_app, make_deployment, environment, settings):
        with pytest.raises(EmptyDefinitionError) as exc_info:
            compile_application(make_app(make_deployment(processes={})), environment, settings=settings)
        assert exc_info.value.context.deployment_version == 1


class TestCompileProcesses:
    def test_manifest_is_applied(self, make_app, make_deployment, environment, settings):
        deployment = make_deployment(
            manifest=DeploymentManifest(
                hooks=Hooks(restart=RestartHooks(before=["migrate"], after=["warm-cache"])),
                healthcheck=HealthcheckConfig(path="/healthz", use_in_router=True),
            ),
            exposed_ports=[ExposedPort(port=8080)],
        )
        web = compile_application(make_app(deployment), environment, settings=settings).deployments[0].processes[0]
        assert web.cmd == ["/bin/sh", "-lc", "migrate && exec python app.py"]
        extra = web.to_values()["extra"]
        assert extra["lifecycle"]["postStart"]["exec"]["command"] == ["sh", "-c", "warm-cache"]
        assert extra["readinessProbe"]["httpGet"]["port"] == 8080
        assert "livenessProbe" not in extra

    def test_process_fields(self, make_app, environment, settings):
        deployment = DeploymentSpec(
            image="shop:v1",
            version=1,
            processes=[
                ProcessSpec(
                    name="web",
                    cmd=["serve"],
                    units=3,
                    env=[Env(name="WORKERS", value="4")],
                    resources={"limits": {"cpu": "500m"}},
                    volumes=[{"name": "data", "emptyDir": {}}],
                    volume_mounts=[{"name": "data", "mountPath": "/data"}],
                )
            ],
            labels=[Label(name="team", value="payments")],
            routing_settings=RoutingSettings(weight=100),
            image_pull_secrets=["pull-secret"],
        )
        values = compile_application(make_app(deployment), environment, settings=settings).values_dict()
        [compiled] = values["app"]["deployments"]
        web = compiled["processes"][0]
        assert web["units"] == 3
        assert web["env"][-1] == {"name": "WORKERS", "value": "4"}
        assert web["extra"]["resourceRequirements"] == {"limits": {"cpu": "500m"}}
        assert web["extra"]["volumeMounts"] == [{"name": "data", "mountPath": "/data"}]
        assert compiled["extra"] == {"volumes": [{"name": "data", "emptyDir": {}}]}
        assert compiled["labels"] == [{"name": "team", "value": "payments"}]
        assert compiled["routingSettings"] == {"weight": 100}
        assert compiled["imagePullSecrets"] == [{"name": "pull-secret"}]

    def test_metadata_per_process(self, make_app, make_deployment, environment, settings):
        app = make_app(
            make_deployment(processes={"web": "serve", "worker": "work"}),
            labels=[
                MetadataRule(target=MetadataTarget.of(TargetKind.POD), apply={"tier": "backend"}),
                MetadataRule(
                    target=MetadataTarget.of(TargetKind.POD), apply={"tier": "frontend"}, process_name="web"
                ),
            ],
        )
        web, worker = compile_application(app, environment, settings=settings).deployments[0].processes
        assert web.metadata.labels.pod == {"tier": "frontend"}
        assert worker.metadata.labels.pod == {"tier": "backend"}

    def test_two_deployments(self, make_app, make_deployment, environment, settings):
        app = make_app(make_deployment(1), make_deployment(2, processes={"api": "serve"}))
        chart = compile_application(app, environment, settings=settings)
        assert [d.version for d in chart.deployments] == [1, 2]
        assert chart.deployments[1].routable_process().name == "api"


class TestApplicationChart:
    def test_not_accessible_without_entrypoints(self, app, environment, settings):
        assert compile_application(app, environment, settings=settings).is_accessible is False

    def test_accessible_with_default_domain(self, make_app, environment, settings):
        app = make_app(ingress=IngressSpec(generate_default_domain=True))
        chart = compile_application(app, environment, settings=settings)
        assert chart.is_accessible
        assert chart.values_dict()["app"]["ingress"]["http"] == ["shop.10.0.0.1.shipa.cloud"]

    def test_values_yaml_is_valid_yaml(self, app, environment, settings):
        chart = compile_application(app, environment, settings=settings)
        assert yaml.safe_load(chart.values_yaml()) == chart.values_dict()

    def test_export_to_directory(self, app, environment, settings, tmp_path):
        templates = TemplateSet(yamls={"deployment.yaml": "kind: Deployment\n", "service.yaml": "kind: Service\n"})
        chart = compile_application(app, environment, templates=templates, settings=settings)
        config = new_chart_config(app, settings)

        stale = tmp_path / "shop" / "templates" / "stale.yaml"
        stale.parent.mkdir(parents=True)
        stale.write_text("old")

        chart_dir = chart.export_to_directory(tmp_path, config)
        assert chart_dir == tmp_path / "shop"
        assert not stale.exists()
        assert (chart_dir / "templates" / "deployment.yaml").read_text() == "kind: Deployment\n"
        assert yaml.safe_load((chart_dir / "values.yaml").read_text())["app"]["name"] == "shop"
        assert yaml.safe_load((chart_dir / "Chart.yaml").read_text())["name"] == "shop"


class TestChartConfig:
    def test_render(self):
        rendered = yaml.safe_load(ChartConfig(app_name="shop", chart_version="1.2.3", app_version="7").render())
        assert rendered == {
            "apiVersion": "v2",
            "name": "shop",
            "description": "application chart",
            "type": "application",
            "version": "1.2.3",
            "appVersion": "7",
        }

    def test_render_without_app_version(self):
        assert "appVersion" not in ChartConfig(app_name="shop", chart_version="0.0.1").render()

    def test_new_chart_config(self, make_app, settings):
        config = new_chart_config(make_app(description="the shop", version="2"), settings)
        assert config == ChartConfig(app_name="shop", chart_version="0.0.1", app_version="2", description="the shop")
