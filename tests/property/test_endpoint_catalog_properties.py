"""Property tests for the endpoint catalogue loader.

Any catalogue file with at least one selectable endpoint loads as written,
and a registry built from it always has a usable fallback.
"""

from __future__ import annotations

import tempfile
from pathlib import Path

import yaml
from hypothesis import given, settings
from hypothesis import strategies as st

from embedrelay.config.endpoints import EndpointSpec, load_endpoint_catalog
from embedrelay.proxy.registry import ProxyHealthRegistry
from embedrelay.proxy.selector import ProxySelector
from embedrelay.services.scheduler import ManualScheduler


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

endpoint_ids_st = st.from_regex(r"[a-z][a-z0-9]{2,12}", fullmatch=True)

embed_templates_st = st.one_of(
    st.none(),
    st.from_regex(r"https://[a-z]{3,10}\.(com|io|video)/embed/", fullmatch=True),
)

endpoint_spec_st = st.builds(
    EndpointSpec,
    name=st.text(alphabet="abcdefghijklmnopqrstuvwxyz ", min_size=1, max_size=20),
    embed=embed_templates_st,
    priority=st.integers(min_value=0, max_value=10),
    health=st.integers(min_value=0, max_value=100).map(float),
    icon=st.one_of(st.none(), st.just("fas fa-server")),
)

catalogues_st = st.dictionaries(
    keys=endpoint_ids_st, values=endpoint_spec_st, min_size=1, max_size=8
).filter(lambda endpoints: any(spec.embed for spec in endpoints.values()))


def _load(data: dict):
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.safe_dump(data, f, sort_keys=False)
        tmp_path = f.name
    try:
        return load_endpoint_catalog(tmp_path)
    finally:
        Path(tmp_path).unlink(missing_ok=True)


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@settings(max_examples=100)
@given(endpoints=catalogues_st)
def test_catalogue_loads_as_written(endpoints: dict[str, EndpointSpec]) -> None:
    catalog = _load(
        {
            "endpoints": {eid: spec.model_dump() for eid, spec in endpoints.items()},
            "user_agents": ["ua"],
        }
    )

    assert list(catalog.endpoints) == list(endpoints)
    for endpoint_id, original in endpoints.items():
        assert catalog.endpoints[endpoint_id] == original


@settings(max_examples=100)
@given(endpoints=catalogues_st)
def test_loaded_catalogue_always_has_fallback(endpoints: dict[str, EndpointSpec]) -> None:
    catalog = _load({"endpoints": {eid: spec.model_dump() for eid, spec in endpoints.items()}})
    registry = ProxyHealthRegistry.from_catalog(catalog, ManualScheduler())
    selector = ProxySelector(registry)

    selectable = [eid for eid, spec in endpoints.items() if spec.embed]
    assert {r.endpoint_id for r in registry.records()} == set(selectable)
    assert selector.fallback() == selectable[0]
    assert selector.select_optimal(selectable) == selectable[0]
