"""
Django Forms for VoteX
======================

Validate the payloads of the JSON API before they reach the vote engine:
- Ballot submission body
- has-voted query string
- candidates query string

Malformed ids are rejected here with a 400; whether an id points at a real
election or candidate is the Ballot Store's call.
"""

from django import forms # pyright: ignore[reportMissingModuleSource]
from django.utils.translation import gettext_lazy as _ # pyright: ignore[reportMissingModuleSource]


class SubmitVoteForm(forms.Form):
    """
    Ballot submission: {voterId, candidateId, electionId}.

    Field names follow the JSON keys sent by the front end.
    """

    voterId = forms.CharField(max_length=64, label=_('Voter'))
    candidateId = forms.UUIDField(label=_('Candidate'))
    electionId = forms.UUIDField(label=_('Election'))

    def clean_voterId(self):
        voter_id = self.cleaned_data['voterId'].strip()
        if not voter_id:
            raise forms.ValidationError(_('Voter id is required.'))
        return voter_id


class HasVotedForm(forms.Form):
    voterId = forms.CharField(max_length=64)
    electionId = forms.UUIDField()


class CandidateListForm(forms.Form):
    electionId = forms.UUIDField()
