from flask import Blueprint, request, jsonify, send_file, abort
from werkzeug.exceptions import HTTPException
from io import BytesIO
from datetime import datetime
import logging

from compliance import countries
from compliance.context import build_context
from compliance.countries.base import CountryConfig
from compliance.documents import GenerateRequest, StyleConfig, generate, supported_formats
from compliance.documents.renderers import EXTENSIONS, MIME_TYPES
from compliance.errors import ConfigurationMissingError, RenderError
from compliance.formats import OUTPUT_FORMATS, FormatConfig
from compliance.formats import supported_formats as xml_formats
from compliance.formats.validation import validate_xml
from compliance.helpers import parse_date, pick
from compliance.model import DocumentData, LineItem, PartyData
from compliance.rules import resolve_rules, validate_party
from compliance.vat import calculate_vat

logger = logging.getLogger(__name__)

compliance_bp = Blueprint('compliance', __name__)


# ── Error handling ──

@compliance_bp.errorhandler(ValueError)
def handle_value_error(e):
    return jsonify({'error': str(e)}), 400


@compliance_bp.errorhandler(ConfigurationMissingError)
def handle_configuration_missing(e):
    return jsonify({'error': str(e)}), 422


@compliance_bp.errorhandler(RenderError)
def handle_render_error(e):
    logger.error("Document rendering failed: %s", e)
    return jsonify({'error': str(e)}), 500


@compliance_bp.errorhandler(HTTPException)
def handle_http_error(e):
    return jsonify({'error': e.description}), e.code


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValueError('Request body must be a JSON object')
    return data


def _country_summary(cfg: CountryConfig):
    return {
        'code': cfg.code,
        'name': cfg.name,
        'currency': cfg.currency,
        'isEU': cfg.is_eu,
        'locale': cfg.locale,
        'defaultFormat': cfg.documents.default_format,
    }


def _country_detail(cfg: CountryConfig):
    detail = _country_summary(cfg)
    detail.update({
        'timezone': cfg.timezone,
        'dedicated': countries.has(cfg.code),
        'builder': cfg.documents.builder,
        'vat': {
            'rates': [{'code': r.code, 'rate': float(r.rate), 'category': r.category, 'label': r.label}
                      for r in cfg.vat.rates],
            'defaultRate': float(cfg.vat.default_rate),
            'roundingMode': cfg.vat.rounding_mode,
            'numberFormat': cfg.vat.number_format,
            'exemptions': [{'code': x.code, 'article': x.article} for x in cfg.vat.exemptions],
        },
        'outputFormats': {k: list(v) for k, v in cfg.documents.output_formats.items()},
        'invoiceEditable': cfg.documents.invoice_editable,
        'requiresCreditNote': cfg.documents.requires_credit_note,
        'companyIdentifiers': [{'id': d.id, 'format': d.format, 'required': d.required}
                               for d in cfg.company_identifiers],
        'clientIdentifiers': [{'id': d.id, 'format': d.format, 'required': d.required}
                              for d in cfg.client_identifiers],
        'transmission': {
            channel: {'model': p.model, 'platform': p.platform, 'mandatory': p.mandatory,
                      'mandatoryFrom': p.mandatory_from}
            for channel, p in cfg.transmission.items()
        },
        'peppol': ({'schemeId': cfg.peppol.scheme_id, 'enabled': cfg.peppol.enabled}
                   if cfg.peppol else None),
        'legalMentions': list(cfg.legal_mentions.mandatory),
    })
    return detail


def _parties(data):
    supplier = pick(data, 'supplier', 'company')
    customer = pick(data, 'customer', 'client')
    if supplier is None or customer is None:
        raise ValueError('Both supplier and customer are required')
    return PartyData.from_dict(supplier), PartyData.from_dict(customer)


# ── Country registry ──

@compliance_bp.route('/countries')
def list_countries():
    return jsonify({
        'countries': [_country_summary(cfg) for cfg in countries.all_configs()],
        'eu': countries.list_eu(),
    })


@compliance_bp.route('/countries/<code>')
def country_detail(code):
    if len(code.strip()) != 2:
        abort(404, description=f"'{code}' is not an ISO 3166-1 alpha-2 code")
    return jsonify(_country_detail(countries.get(code)))


@compliance_bp.route('/formats')
def list_formats():
    result = {
        'formats': [
            {'format': fmt, 'mimeType': MIME_TYPES[fmt], 'extension': EXTENSIONS[fmt]}
            for fmt in OUTPUT_FORMATS
        ],
        'xmlFormats': xml_formats(),
    }
    document_type = request.args.get('documentType')
    country = request.args.get('country')
    if document_type and country:
        result['supported'] = supported_formats(document_type, country)
    return jsonify(result)


# ── Calculations ──

@compliance_bp.route('/vat', methods=['POST'])
def vat():
    """VAT totals for ``items`` under the supplier country's policy."""
    data = _json_body()
    items = [LineItem.coerce(i) for i in pick(data, 'items', default=[])]
    if 'supplier' in data and 'customer' in data:
        supplier, customer = _parties(data)
        cfg = countries.get(supplier.country_code)
        reverse_charge = build_context(supplier, customer, items).reverse_charge
    else:
        cfg = countries.get(pick(data, 'country', 'supplierCountry'))
        reverse_charge = bool(pick(data, 'reverseCharge', 'reverse_charge', default=False))
    result = calculate_vat(items, cfg.vat, reverse_charge=reverse_charge)
    return jsonify({'country': cfg.code, **result.to_dict()})


@compliance_bp.route('/rules', methods=['POST'])
def rules():
    data = _json_body()
    supplier, customer = _parties(data)
    context = build_context(supplier, customer, pick(data, 'items', default=[]))
    now = parse_date(pick(data, 'date', 'now'))
    result = resolve_rules(context, now=now).to_dict()
    result['context'] = {
        'supplierCountry': context.supplier_country,
        'customerCountry': context.customer_country,
        'transactionType': context.transaction_type,
        'nature': context.nature,
        'isDomestic': context.is_domestic,
        'isIntraEU': context.is_intra_eu,
        'isExport': context.is_export,
        'reverseCharge': context.reverse_charge,
        'placeOfTaxation': context.place_of_taxation,
    }
    result['partyErrors'] = {
        'supplier': validate_party(supplier, countries.get(supplier.country_code), 'company'),
        'customer': validate_party(customer, countries.get(customer.country_code), 'client'),
    }
    return jsonify(result)


@compliance_bp.route('/validate-xml', methods=['POST'])
def validate():
    """Accepts raw XML, or JSON ``{"xml": ..., "syntax": ...}``."""
    syntax = request.args.get('syntax')
    if request.is_json:
        data = _json_body()
        xml = data.get('xml')
        syntax = data.get('syntax') or syntax
    else:
        xml = request.get_data()
    if not xml:
        raise ValueError('No XML supplied')
    return jsonify(validate_xml(xml, syntax).to_dict())


# ── Documents ──

@compliance_bp.route('/documents', methods=['POST'])
def documents():
    """Generate a document and return it as a file download."""
    data = _json_body()
    document = DocumentData.from_dict(pick(data, 'data', default=data), pick(data, 'documentType', 'type'))

    generated_at = pick(data, 'generatedAt', 'generated_at')
    format_config = FormatConfig(
        profile=pick(data, 'profile'),
        sequence_id=pick(data, 'sequenceId', 'sequence_id'),
        generated_at=datetime.fromisoformat(generated_at) if generated_at else None,
        transmitter_id=pick(data, 'transmitterId', 'transmitter_id'),
        buyer_reference=pick(data, 'buyerReference', 'buyer_reference'),
    )
    doc = generate(GenerateRequest(
        document_type=document.document_type,
        data=document,
        format=pick(data, 'format', 'outputFormat', default='pdf'),
        supplier_country=pick(data, 'supplierCountry', 'supplier_country'),
        style=StyleConfig.from_dict(pick(data, 'style', 'styleConfig', 'pdfConfig')),
        format_config=format_config,
    ))

    response = send_file(
        BytesIO(doc.buffer),
        mimetype=doc.mime_type,
        as_attachment=True,
        download_name=doc.filename,
        max_age=0,
    )
    response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, max-age=0'
    response.headers['X-Document-Format'] = doc.format
    response.headers['X-Builder-Kind'] = doc.metadata['builderKind']
    response.headers['X-Xml-Embedded'] = 'true' if doc.metadata['xmlEmbedded'] else 'false'
    return response
