"""
Integration tests for the proposals JSON API (Flask client + SQLite).
"""

from datetime import date, timedelta
from decimal import Decimal

import pytest


def _create(client, company_id, xray_id, audio_id, **extra):
    payload = {
        'company_id': company_id,
        'items': [
            {'service_ref': str(xray_id), 'quantity': 10},
            {'service_ref': str(audio_id), 'quantity': 4, 'discount_percent': '10'},
        ],
    }
    payload.update(extra)
    return client.post('/proposals/', json=payload)


@pytest.fixture
def ids(company, health_tests):
    """Primary keys read up front; requests close the shared session."""
    xray, audio = health_tests
    return company.id, xray.id, audio.id


class TestCreateProposal:

    def test_create_from_catalog(self, client, ids):
        company_id, xray_id, audio_id = ids

        response = _create(client, company_id, xray_id, audio_id)

        assert response.status_code == 201
        data = response.get_json()['proposal']
        assert data['status'] == 'Draft'
        assert data['proposal_number'].startswith('PR-')
        assert data['company_name'] == 'Anadolu Tekstil A.Ş.'
        assert data['current_version_number'] == 1
        assert len(data['versions']) == 1
        assert len(data['terms']) == 4
        assert 'Ayşe Yılmaz' in data['notes']
        assert 'Odyometri' in data['notes']

        totals = data['totals']
        assert Decimal(totals['sub_total']) == Decimal('12000')
        assert Decimal(totals['tax_base']) == Decimal('11800')
        assert Decimal(totals['grand_total']) == Decimal('14160')
        assert totals['profit_margin_percent'] == 42

    def test_create_with_overall_discount_and_custom_line(self, client, ids):
        company_id, xray_id, _ = ids
        response = client.post('/proposals/', json={
            'company_id': company_id,
            'tax_rate': '10',
            'overall_discount': '5',
            'currency': 'EUR',
            'exchange_rate': '35,5',
            'notes': 'Kısa not',
            'items': [
                {'service_ref': str(xray_id), 'quantity': 2},
                {'custom': True, 'custom_name': 'Yerinde eğitim', 'unit_price': '1.000,00'},
            ],
        })

        assert response.status_code == 201
        data = response.get_json()['proposal']
        assert data['notes'] == 'Kısa not'
        assert data['currency'] == 'EUR'
        assert Decimal(data['exchange_rate']) == Decimal('35.5')
        assert data['items'][1]['name'] == 'Yerinde eğitim'
        assert data['items'][1]['service_ref'] == 'custom'
        assert Decimal(data['totals']['sub_total']) == Decimal('3000')
        assert Decimal(data['totals']['tax_base']) == Decimal('2850')
        assert Decimal(data['totals']['grand_total']) == Decimal('3135')

    def test_create_without_items(self, client, ids):
        company_id, _, _ = ids
        response = client.post('/proposals/', json={'company_id': company_id, 'items': []})
        assert response.status_code == 400
        assert response.get_json()['status'] == 'error'

    def test_create_unknown_service(self, client, ids):
        company_id, _, _ = ids
        response = client.post('/proposals/', json={'company_id': company_id, 'items': [{'service_ref': '9999'}]})
        assert response.status_code == 404

    def test_create_unknown_company(self, client, ids):
        _, xray_id, audio_id = ids
        response = _create(client, 9999, xray_id, audio_id)
        assert response.status_code == 404

    def test_create_rejects_bad_discount(self, client, ids):
        company_id, xray_id, _ = ids
        response = client.post('/proposals/', json={
            'company_id': company_id,
            'items': [{'service_ref': str(xray_id), 'discount_percent': 120}],
        })
        assert response.status_code == 422
        assert response.get_json()['field'] == 'discount_percent'


class TestEditProposal:

    def test_item_editing(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.patch(f'/proposals/{proposal_id}/items/0', json={'quantity': 5})
        assert response.status_code == 200
        data = response.get_json()['proposal']
        assert data['items'][0]['quantity'] == 5
        assert Decimal(data['totals']['sub_total']) == Decimal('7000')

        response = client.post(f'/proposals/{proposal_id}/items', json={'custom': True})
        assert response.status_code == 201
        assert len(response.get_json()['proposal']['items']) == 3

        response = client.delete(f'/proposals/{proposal_id}/items/2')
        assert response.status_code == 200
        assert len(response.get_json()['proposal']['items']) == 2

    def test_item_index_out_of_range(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.patch(f'/proposals/{proposal_id}/items/5', json={'quantity': 1})
        assert response.status_code == 404

        data = client.get(f'/proposals/{proposal_id}').get_json()['proposal']
        assert Decimal(data['total_amount']) == Decimal('14160')

    def test_invalid_number_is_rejected(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.patch(f'/proposals/{proposal_id}/items/0', json={'unit_price': 'on bin'})
        assert response.status_code == 422

        response = client.patch(f'/proposals/{proposal_id}/items/0', json={'quantity': -2})
        assert response.status_code == 422

    def test_switch_item_type(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        item = client.post(f'/proposals/{proposal_id}/items/0/custom').get_json()['proposal']['items'][0]
        assert item['service_ref'] == 'custom'
        assert item['custom_name'] == ''
        assert Decimal(item['unit_cost']) == 0

        item = client.post(
            f'/proposals/{proposal_id}/items/0/catalog', json={'service_ref': str(audio_id)}
        ).get_json()['proposal']['items'][0]
        assert item['service_ref'] == str(audio_id)
        assert item['custom_name'] is None
        assert Decimal(item['unit_price']) == Decimal('500')

    def test_header_update(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.patch(f'/proposals/{proposal_id}', json={
            'status': 'Sent',
            'tax_rate': 0,
            'valid_until': '2020-01-31',
        })

        assert response.status_code == 200
        data = response.get_json()['proposal']
        assert data['status'] == 'Sent'
        assert data['is_expired'] is True
        assert Decimal(data['totals']['grand_total']) == Decimal('11800')

    def test_header_update_rejects_unknown_status(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.patch(f'/proposals/{proposal_id}', json={'status': 'Archived', 'notes': 'x'})
        assert response.status_code == 400

        data = client.get(f'/proposals/{proposal_id}').get_json()['proposal']
        assert data['status'] == 'Draft'
        assert data['notes'] != 'x'


class TestVersions:

    def test_save_and_restore(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        client.patch(f'/proposals/{proposal_id}/items/0', json={'quantity': 1})
        response = client.post(f'/proposals/{proposal_id}/versions', json={'author': 'Mehmet'})
        assert response.status_code == 201
        body = response.get_json()
        assert body['version']['version'] == 2
        assert body['version']['created_by'] == 'Mehmet'

        response = client.post(f'/proposals/{proposal_id}/versions/1/restore')
        assert response.status_code == 200
        data = response.get_json()['proposal']
        assert data['items'][0]['quantity'] == 10
        assert Decimal(data['total_amount']) == Decimal('14160')
        assert data['current_version_number'] == 1
        assert [v['version'] for v in data['versions']] == [1, 2]

        body = client.post(f'/proposals/{proposal_id}/versions').get_json()
        assert body['version']['version'] == 3

    def test_view_version(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.get(f'/proposals/{proposal_id}/versions/1')
        assert response.status_code == 200
        version = response.get_json()['version']
        assert len(version['items']) == 2
        assert Decimal(version['total_amount']) == Decimal('14160')

    def test_restore_unknown_version(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.post(f'/proposals/{proposal_id}/versions/9/restore')
        assert response.status_code == 404


class TestListingAndStats:

    def test_list_search_and_sort(self, client, ids):
        company_id, xray_id, audio_id = ids
        first = _create(client, company_id, xray_id, audio_id).get_json()['proposal']
        second = client.post('/proposals/', json={
            'company_id': company_id,
            'items': [{'service_ref': str(audio_id)}],
        }).get_json()['proposal']

        response = client.get('/proposals/?sort=amountAsc')
        numbers = [p['proposal_number'] for p in response.get_json()['proposals']]
        assert numbers == [second['proposal_number'], first['proposal_number']]

        response = client.get('/proposals/?q=anadolu')
        assert len(response.get_json()['proposals']) == 2

        response = client.get(f"/proposals/?q={first['proposal_number']}")
        assert [p['id'] for p in response.get_json()['proposals']] == [first['id']]

        response = client.get('/proposals/?status=Sent')
        assert response.get_json()['proposals'] == []

    def test_list_rejects_unknown_sort(self, client, ids):
        response = client.get('/proposals/?sort=name')
        assert response.status_code == 400

    def test_stats(self, client, ids):
        company_id, xray_id, audio_id = ids
        first = _create(client, company_id, xray_id, audio_id).get_json()['proposal']
        _create(client, company_id, xray_id, audio_id)
        client.patch(f"/proposals/{first['id']}", json={'status': 'Approved'})

        stats = client.get('/proposals/stats').get_json()['stats']
        assert stats['total_count'] == 2
        assert stats['counts']['Approved'] == 1
        assert stats['counts']['Draft'] == 1
        assert stats['conversion_rate'] == 50
        assert Decimal(stats['approved_amount']) == Decimal('14160')
        assert Decimal(stats['pending_amount']) == Decimal('14160')
        assert Decimal(stats['total_amount']) == Decimal('28320')

    def test_duplicate(self, client, ids):
        company_id, xray_id, audio_id = ids
        original = _create(client, company_id, xray_id, audio_id).get_json()['proposal']
        client.patch(f"/proposals/{original['id']}", json={'status': 'Sent'})
        client.post(f"/proposals/{original['id']}/versions")

        response = client.post(f"/proposals/{original['id']}/duplicate")

        assert response.status_code == 201
        copy = response.get_json()['proposal']
        assert copy['id'] != original['id']
        assert copy['proposal_number'] != original['proposal_number']
        assert copy['status'] == 'Draft'
        assert copy['current_version_number'] == 1
        assert Decimal(copy['total_amount']) == Decimal('14160')

    def test_options(self, client):
        data = client.get('/proposals/options').get_json()
        assert data['tax_rates'] == ['0', '10', '20']
        assert 'TRY' in data['currencies']
        assert data['statuses'] == ['Draft', 'Sent', 'Approved', 'Rejected']

    def test_unknown_proposal(self, client, session):
        response = client.get('/proposals/424242')
        assert response.status_code == 404
        assert response.get_json()['status'] == 'error'


class TestStoredPrecision:
    """Values read back from the database price exactly as they were edited."""

    def test_edited_prices_survive_reload(self, client, ids):
        company_id, xray_id, _ = ids
        proposal_id = client.post('/proposals/', json={
            'company_id': company_id,
            'tax_rate': '0',
            'items': [{'service_ref': str(xray_id), 'quantity': 1000}],
        }).get_json()['proposal']['id']

        edited = client.patch(f'/proposals/{proposal_id}/items/0', json={
            'unit_price': '10.555',
            'discount_percent': '12.345',
        }).get_json()['proposal']
        assert Decimal(edited['total_amount']) == Decimal('9251.98525')

        reloaded = client.get(f'/proposals/{proposal_id}').get_json()['proposal']
        item = reloaded['items'][0]
        assert Decimal(item['unit_price']) == Decimal('10.555')
        assert Decimal(item['discount_percent']) == Decimal('12.345')
        assert Decimal(item['line_total']) == Decimal('9251.98525')
        assert Decimal(reloaded['total_amount']) == Decimal(edited['total_amount'])

        listed = client.get('/proposals/').get_json()['proposals']
        assert Decimal(listed[0]['total_amount']) == Decimal('9251.98525')
        stats = client.get('/proposals/stats').get_json()['stats']
        assert Decimal(stats['total_amount']) == Decimal('9251.98525')

    def test_version_and_restore_keep_edited_prices(self, client, ids):
        company_id, xray_id, _ = ids
        proposal_id = client.post('/proposals/', json={
            'company_id': company_id,
            'tax_rate': '0',
            'items': [{'service_ref': str(xray_id), 'quantity': 1000}],
        }).get_json()['proposal']['id']
        client.patch(f'/proposals/{proposal_id}/items/0', json={
            'unit_price': '10.555',
            'discount_percent': '12.345',
        })

        version = client.post(f'/proposals/{proposal_id}/versions').get_json()['version']
        assert Decimal(version['items'][0]['unit_price']) == Decimal('10.555')
        assert Decimal(version['total_amount']) == Decimal('9251.98525')

        client.patch(f'/proposals/{proposal_id}/items/0', json={'unit_price': '1'})
        restored = client.post(f"/proposals/{proposal_id}/versions/{version['version']}/restore").get_json()['proposal']
        assert Decimal(restored['items'][0]['unit_price']) == Decimal('10.555')
        assert Decimal(restored['total_amount']) == Decimal('9251.98525')

        listed = client.get('/proposals/').get_json()['proposals']
        assert Decimal(listed[0]['total_amount']) == Decimal('9251.98525')

    def test_extra_decimals_rounded_on_input(self, client, ids):
        company_id, xray_id, _ = ids
        proposal_id = client.post('/proposals/', json={
            'company_id': company_id,
            'tax_rate': '0',
            'items': [{'service_ref': str(xray_id), 'quantity': 3, 'unit_price': '0.1234567'}],
        }).get_json()['proposal']['id']

        reloaded = client.get(f'/proposals/{proposal_id}').get_json()['proposal']
        assert Decimal(reloaded['items'][0]['unit_price']) == Decimal('0.123457')
        assert Decimal(reloaded['total_amount']) == Decimal('0.370371')

        listed = client.get('/proposals/').get_json()['proposals']
        assert Decimal(listed[0]['total_amount']) == Decimal('0.370371')


class TestDeleteProposals:

    def test_delete_single(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.delete(f'/proposals/{proposal_id}')

        assert response.status_code == 200
        assert response.get_json()['deleted'] == 1
        assert client.get(f'/proposals/{proposal_id}').status_code == 404
        assert client.get('/proposals/').get_json()['proposals'] == []

    def test_bulk_delete(self, client, ids):
        company_id, xray_id, audio_id = ids
        first = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']
        second = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']
        kept = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.post('/proposals/bulk-delete', json={'ids': [first, second, first]})

        assert response.status_code == 200
        assert response.get_json()['deleted'] == 2
        assert [p['id'] for p in client.get('/proposals/').get_json()['proposals']] == [kept]
        assert client.get('/proposals/stats').get_json()['stats']['total_count'] == 1

    def test_bulk_delete_with_unknown_id_deletes_nothing(self, client, ids):
        company_id, xray_id, audio_id = ids
        proposal_id = _create(client, company_id, xray_id, audio_id).get_json()['proposal']['id']

        response = client.post('/proposals/bulk-delete', json={'ids': [proposal_id, 424242]})

        assert response.status_code == 404
        assert response.get_json()['ids'] == [424242]
        assert client.get(f'/proposals/{proposal_id}').status_code == 200

    @pytest.mark.parametrize('payload', [{}, {'ids': []}, {'ids': 'all'}, {'ids': ['1']}])
    def test_bulk_delete_rejects_bad_ids(self, client, ids, payload):
        response = client.post('/proposals/bulk-delete', json=payload)
        assert response.status_code == 400

    def test_delete_unknown(self, client, session):
        assert client.delete('/proposals/424242').status_code == 404

    def test_numbers_not_reused_after_delete(self, client, ids):
        company_id, xray_id, audio_id = ids
        first = _create(client, company_id, xray_id, audio_id).get_json()['proposal']
        second = _create(client, company_id, xray_id, audio_id).get_json()['proposal']
        client.delete(f"/proposals/{first['id']}")

        third = _create(client, company_id, xray_id, audio_id)

        assert third.status_code == 201
        assert third.get_json()['proposal']['proposal_number'] not in (
            first['proposal_number'], second['proposal_number'],
        )


class TestConfiguredDefaults:

    def test_creation_uses_app_config(self, app, client, ids, monkeypatch):
        monkeypatch.setitem(app.config, 'PROPOSAL_DEFAULT_TAX_RATE', '10')
        monkeypatch.setitem(app.config, 'PROPOSAL_VALID_DAYS', 7)
        monkeypatch.setitem(app.config, 'PROPOSAL_VERSION_AUTHOR', 'Kalite Birimi')
        company_id, xray_id, audio_id = ids

        data = _create(client, company_id, xray_id, audio_id).get_json()['proposal']

        assert Decimal(data['tax_rate_percent']) == Decimal('10')
        assert Decimal(data['total_amount']) == Decimal('12980')
        issued = date.fromisoformat(data['issued_on'])
        assert date.fromisoformat(data['valid_until']) - issued == timedelta(days=7)
        assert data['versions'][0]['created_by'] == 'Kalite Birimi'

        version = client.post(f"/proposals/{data['id']}/versions").get_json()['version']
        assert version['created_by'] == 'Kalite Birimi'

        options = client.get('/proposals/options').get_json()
        assert options['default_tax_rate'] == '10'
