import os
import random
import sys
import threading
import unittest
from unittest.mock import Mock, patch

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from azure.cosmos.exceptions import CosmosHttpResponseError

from shared import cosmos_client
from shared.cosmos_client import MissingCosmosConfig, resolve_credentials
from shared.theme_sampler import ProcedureInstallError, QueryThemeSampler
from shared.themes_cosmos_client import RecordNotFound, ThemesStore
from fakes import FakeClient, extensions, themes


def make_store(client):
    return ThemesStore(client, sampler_factory=lambda c: QueryThemeSampler(c, rng=random.Random(11)))


class TestReadiness(unittest.TestCase):

    def test_database_and_containers_created_once(self):
        client = FakeClient()
        store = make_store(client)

        store.ensure_ready()
        store.ensure_ready()

        self.assertTrue(store.ready)
        self.assertEqual(client.database_calls, 1)
        self.assertEqual([c[0] for c in client.database.container_calls], ["extensions", "themes"])

    def test_concurrent_first_requests_initialise_once(self):
        client = FakeClient(themes(2), extensions(2))
        store = make_store(client)
        barrier = threading.Barrier(8)
        errors = []

        def first_request():
            barrier.wait()
            try:
                store.ensure_ready()
            except Exception as e:  # surfaced below
                errors.append(e)

        threads = [threading.Thread(target=first_request) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(errors, [])
        self.assertEqual(client.database_calls, 1)
        self.assertEqual(len(client.database.container_calls), 2)

    def test_failed_initialisation_is_retried(self):
        client = FakeClient()
        real_create = client.create_database_if_not_exists
        client.create_database_if_not_exists = Mock(
            side_effect=[CosmosHttpResponseError(status_code=503, message="busy"), real_create(id="onlyThemesDb")])
        store = make_store(client)

        with self.assertRaises(CosmosHttpResponseError):
            store.ensure_ready()
        self.assertFalse(store.ready)

        store.ensure_ready()
        self.assertTrue(store.ready)

    def test_sampler_is_installed_during_readiness(self):
        sampler = Mock()
        store = ThemesStore(FakeClient(), sampler_factory=lambda c: sampler)

        store.ensure_ready()

        sampler.install.assert_called_once_with()
        self.assertIs(store.sampler, sampler)

    def test_write_path_only_needs_extensions_container(self):
        client = FakeClient()
        sampler_factory = Mock()
        store = ThemesStore(client, sampler_factory=sampler_factory)

        store.ensure_writable()

        self.assertTrue(store.writable)
        self.assertFalse(store.ready)
        self.assertEqual([c[0] for c in client.database.container_calls], ["extensions"])
        sampler_factory.assert_not_called()

    def test_failed_sampler_install_leaves_store_writable(self):
        sampler = Mock()
        sampler.install.side_effect = ProcedureInstallError("Could not install getRandomTheme")
        client = FakeClient()
        store = ThemesStore(client, sampler_factory=lambda c: sampler)

        with self.assertRaises(ProcedureInstallError):
            store.ensure_ready()
        store.upsert_extension({"id": "ext-1", "extensionId": "ext-1", "displayName": "Still works"})

        self.assertFalse(store.ready)
        self.assertIn("ext-1", client.containers["extensions"].docs)
        self.assertEqual(client.database_calls, 1)

    def test_client_is_built_on_first_use(self):
        client_factory = Mock(return_value=FakeClient())
        store = ThemesStore(client_factory=client_factory, sampler_factory=Mock())

        self.assertFalse(store.ready)
        client_factory.assert_not_called()

        store.ensure_writable()
        store.ensure_ready()
        client_factory.assert_called_once_with()


class TestLookups(unittest.TestCase):

    def setUp(self):
        self.client = FakeClient(themes(3), extensions(3))
        self.store = make_store(self.client)

    def test_get_theme_by_id(self):
        self.assertEqual(self.store.get_theme("theme-1")["extensionId"], "ext-1")

    def test_missing_theme_raises_not_found(self):
        with self.assertRaises(RecordNotFound) as ctx:
            self.store.get_theme("nope")
        self.assertEqual(ctx.exception.kind, "theme")

    def test_extension_joins_on_extension_id_not_id(self):
        extension = self.store.get_extension("ext-2")

        self.assertEqual(extension["id"], "doc-ext-2")
        with self.assertRaises(RecordNotFound):
            self.store.get_extension("doc-ext-2")

    def test_theme_without_extension_id_raises_not_found(self):
        with self.assertRaises(RecordNotFound):
            self.store.get_extension(None)

    def test_random_pair_matches_join(self):
        theme, extension = self.store.random_theme_with_extension()

        self.assertEqual(theme["extensionId"], extension["extensionId"])

    def test_no_eligible_theme_raises_not_found(self):
        store = make_store(FakeClient(themes(2, captured=False), extensions(2)))

        with self.assertRaises(RecordNotFound):
            store.random_theme_id()


class TestUpsert(unittest.TestCase):

    def test_second_upsert_replaces_first(self):
        client = FakeClient()
        store = make_store(client)

        store.upsert_extension({"id": "ext-1", "extensionId": "ext-1", "displayName": "First"})
        store.upsert_extension({"id": "ext-1", "extensionId": "ext-1", "displayName": "Second"})

        docs = client.containers["extensions"].docs
        self.assertEqual(list(docs), ["ext-1"])
        self.assertEqual(docs["ext-1"]["displayName"], "Second")


class TestCredentials(unittest.TestCase):

    def setUp(self):
        cosmos_client.get_client.cache_clear()

    def tearDown(self):
        cosmos_client.get_client.cache_clear()

    def test_missing_credentials_raise(self):
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(MissingCosmosConfig):
                cosmos_client.get_client()

    def test_canonical_names_win_over_legacy(self):
        env = {
            "COSMOS_URI": "https://new.documents.azure.com:443/",
            "COSMOS_KEY": "new-key",
            "cosmosDbEndpoint": "https://old.documents.azure.com:443/",
            "cosmosDbKey": "old-key",
        }
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(resolve_credentials(), ("https://new.documents.azure.com:443/", "new-key"))

    def test_legacy_names_still_work(self):
        env = {"cosmosDbEndpoint": "https://old.documents.azure.com:443/", "cosmosDbKey": "old-key"}
        with patch.dict(os.environ, env, clear=True):
            self.assertEqual(resolve_credentials(), ("https://old.documents.azure.com:443/", "old-key"))


if __name__ == "__main__":
    unittest.main()
