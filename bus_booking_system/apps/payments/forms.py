"""
Forms for Payment operations.
"""

from django import forms
from django.utils.translation import gettext_lazy as _


class PaymentConfirmForm(forms.Form):
    """Confirms payment for the draft booking held in the session."""
    draft_id = forms.CharField(widget=forms.HiddenInput())

    def __init__(self, *args, draft=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.draft = draft
        if draft is not None and not self.is_bound:
            self.fields['draft_id'].initial = draft.draft_id

    def clean_draft_id(self):
        draft_id = self.cleaned_data['draft_id']
        if self.draft is None or draft_id != self.draft.draft_id:
            raise forms.ValidationError(_('This booking is no longer awaiting payment.'))
        return draft_id
